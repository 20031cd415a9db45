"""Tests for metadata filtering and statement period extraction"""
from backend.statement_etl.filter import MetadataFilter, row_cells


def test_account_number_line_is_metadata():
    f = MetadataFilter()
    assert f.is_metadata("Account Number : 1234567890")
    assert f.is_metadata(["Account Number", "1234567890"])
    assert f.is_metadata({"Field": "IFS Code : SBIN0001234"})


def test_transaction_rows_are_kept():
    f = MetadataFilter()
    row = {"Txn Date": "01/11/2025", "Description": "NEFT ACME", "Credit": "1,000.00"}
    assert not f.is_metadata(row)
    # a short row with a numeric date is not account info
    assert not f.is_metadata(["Balance on 01/11/2025", "5,000.00"])


def test_description_is_not_a_metadata_keyword():
    f = MetadataFilter()
    assert not f.is_metadata(["Description", "Cash"])
    assert "description" not in f.get_keywords()


def test_filter_rows_keeps_order():
    f = MetadataFilter()
    rows = [
        {"a": "Currency : INR"},
        {"Txn Date": "01/11/2025", "Credit": "10.00"},
        {},
        {"Txn Date": "02/11/2025", "Debit": "5.00"},
    ]
    assert f.filter_rows(rows) == [rows[1], rows[3]]


def test_preheader_name_and_branch_lines():
    f = MetadataFilter()
    assert f.is_preheader_metadata(["Name : ASHA RAO"])
    assert f.is_preheader_metadata(["Branch : MG ROAD"])
    assert not f.is_preheader_metadata(["Branch Code", "Debit", "Credit"])


def test_extract_period():
    f = MetadataFilter()
    lines = [
        "Account Number : 1234567890",
        "Start Date : 01/11/2025",
        "End Date : 30 Nov 2025",
        "01-11-2025  NEFT  1,000.00",
    ]
    assert f.extract_period(lines) == ("01/11/2025", "30 Nov 2025")
    assert f.extract_period(["no period here"]) == (None, None)


def test_row_cells():
    assert row_cells("a\tb  c d") == ["a", "b", "c d"]
    assert row_cells([None, " x ", ""]) == ["x"]


def test_single_spaced_transaction_with_keyword_is_kept():
    f = MetadataFilter()
    assert not f.is_metadata("02 Nov 2025 02 Nov 2025 UNCLEARED CHQ RETURNED 5,000.00 20,000.00")
    assert not f.is_metadata("12 Nov 2025 FOREIGN CURRENCY MARKUP FEE 12.00 72,988.00")
    assert f.is_metadata("Uncleared Amount 0.00")
