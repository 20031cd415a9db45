"""Tests for document readers and the tabular header discovery"""
from unittest import mock

import pytest

from backend.statement_etl.errors import (
    EmptyInputError, NoDataError, RendererUnavailableError, UnsupportedFormatError,
)
from backend.statement_etl.extract import (
    CSVParser, DocxParser, PageRenderer, ParserFactory, PDFParser,
    SpreadsheetParser, TabularReader, format_cell, parse_keyed_lines, sniff_delimiter,
)
from backend.statement_etl.schema import RawDocument

HEADER = ["Txn Date", "Value Date", "Description", "Ref No./Cheque No.",
          "Branch Code", "Debit", "Credit", "Balance"]


def test_header_discovery_skips_metadata_rows():
    grid = [
        ["Account Number : 1234567890", "", ""],
        ["Name : ASHA RAO", "", ""],
        ["Currency : INR", "", ""],
        ["Txn Date", "Value Date", "Description", "Ref No./Cheque No.", "Debit", "Credit"],
        ["01/11/2025", "01/11/2025", "NEFT ACME", "N123", "", "1,000.00"],
        ["02/11/2025", "02/11/2025", "ATM CASH", "", "500.00", ""],
    ]
    reader = TabularReader()
    assert reader.find_header(grid) == 3
    rows = reader.read(grid)
    assert len(rows) == 2
    assert rows[0] == {"Txn Date": "01/11/2025", "Value Date": "01/11/2025",
                       "Description": "NEFT ACME", "Ref No./Cheque No.": "N123",
                       "Credit": "1,000.00"}


def test_without_header_first_row_is_used_and_metadata_dropped():
    grid = [
        ["Invoice No", "Name", "Amount"],
        ["Currency : INR", "", ""],
        ["INV-1", "Asha", "100"],
    ]
    rows = TabularReader().read(grid)
    assert rows == [{"Invoice No": "INV-1", "Name": "Asha", "Amount": "100"}]


def test_empty_and_no_data():
    with pytest.raises(EmptyInputError):
        TabularReader().read([["", None], []])
    with pytest.raises(NoDataError):
        TabularReader().read([HEADER, ["", "", ""]])


def test_csv_with_short_metadata_lines(statement_csv):
    payload = CSVParser().parse(RawDocument.from_upload("s.csv", statement_csv))
    assert payload["kind"] == "grid"
    grid = payload["grid"]
    assert grid[0][0] == "Account Number : 1234567890"
    assert grid[4][:6] == ["01/11/2025", "01/11/2025", "NEFT ACME", "N123", "", "1,000.00"]


def test_csv_empty_file():
    with pytest.raises(EmptyInputError):
        CSVParser().parse(RawDocument.from_upload("s.csv", b"\n  \n"))


def test_format_cell_display_values():
    assert format_cell(45727, date_column=True) == "11-Mar-25"
    assert format_cell("3/11/25", date_column=True) == "3/11/25"
    assert format_cell(1500.5, "0.00") == "1500.50"
    assert format_cell(10000.0) == "10000"
    assert format_cell(None) == ""


def test_spreadsheet_preserves_dates(make_xlsx):
    content = make_xlsx([
        ["Account Number : 1234567890"],
        HEADER,
        [45727, "3/11/25", "NEFT CR ACME", "N1234567", "00123", None, 1500.5, 10000],
    ])
    payload = SpreadsheetParser().parse(RawDocument.from_upload("s.xlsx", content))
    rows = TabularReader().read(payload["grid"])
    assert rows == [{
        "Txn Date": "11-Mar-25",
        "Value Date": "3/11/25",
        "Description": "NEFT CR ACME",
        "Ref No./Cheque No.": "N1234567",
        "Branch Code": "00123",
        "Credit": "1500.5",
        "Balance": "10000",
    }]


def test_spreadsheet_rejects_garbage():
    with pytest.raises(UnsupportedFormatError):
        SpreadsheetParser().parse(RawDocument.from_upload("s.xlsx", b"not a workbook"))


def test_docx_paragraphs_and_table_rows(make_docx):
    content = make_docx(
        ["Account Number : 1234567890"],
        [HEADER, ["01-11-2025", "01-11-2025", "BY TRANSFER NEFT ACME", "", "", "", "2,000.00", "12,000.00"]],
    )
    payload = DocxParser().parse(RawDocument.from_upload("s.docx", content))
    assert payload["kind"] == "lines"
    assert payload["lines"][0] == "Account Number : 1234567890"
    assert payload["lines"][1] == "\t".join(HEADER)
    assert payload["lines"][2].startswith("01-11-2025\t01-11-2025\tBY TRANSFER NEFT ACME")


def test_keyed_line_fallback():
    lines = ["Fee receipts", "Invoice No, Student Name, Amount", "INV-1, Asha, 500", "note"]
    assert parse_keyed_lines(lines) == [
        {"Invoice No": "INV-1", "Student Name": "Asha", "Amount": "500"},
    ]


def test_keyed_line_fallback_positional_keys():
    assert parse_keyed_lines(["12/01/2025   Asha   500"]) == [
        {"date": "12/01/2025", "name": "Asha", "amount": "500"},
    ]


def _word(text, x0, top, width):
    return {"text": text, "x0": x0, "x1": x0 + width, "top": top, "bottom": top + 8}


def _fake_pdfplumber(pages_words):
    pages = []
    for words in pages_words:
        page = mock.MagicMock()
        page.extract_words.return_value = words
        pages.append(page)
    pdf = mock.MagicMock()
    pdf.__enter__.return_value = pdf
    pdf.pages = pages
    backend = mock.MagicMock()
    backend.open.return_value = pdf
    return backend


def test_pdf_words_become_lines(monkeypatch):
    backend = _fake_pdfplumber([[
        _word("Account Number : 1234567890", 10, 50, 150),
        _word("01-11-2025", 10, 100.2, 50),
        _word("01-11-2025", 200, 100.2, 50),
        _word("RTGS INB: CR0AOXXGS6 ACME", 350, 100.2, 150),
        _word("1,50,000.00", 760, 100.2, 60),
        _word("2,50,000.00", 1000, 100.2, 60),
    ]])
    monkeypatch.setattr(PageRenderer, "_instance", PageRenderer(backend=backend))
    payload = PDFParser().parse(RawDocument.from_upload("s.pdf", b"%PDF-1.4"))
    assert payload["lines"] == [
        "Account Number : 1234567890",
        "01-11-2025\t01-11-2025\tRTGS INB: CR0AOXXGS6 ACME\t1,50,000.00\t2,50,000.00",
    ]
    backend.open.return_value.pages[0].extract_words.assert_called_once_with(keep_blank_chars=True)


def test_pdf_open_failure_is_renderer_unavailable(monkeypatch):
    backend = mock.MagicMock()
    backend.open.side_effect = ValueError("broken xref")
    monkeypatch.setattr(PageRenderer, "_instance", PageRenderer(backend=backend))
    with pytest.raises(RendererUnavailableError):
        PDFParser().parse(RawDocument.from_upload("s.pdf", b"junk"))


def test_renderer_initialized_once(monkeypatch):
    monkeypatch.setattr(PageRenderer, "_instance", None)
    with mock.patch.object(PageRenderer, "__init__", return_value=None) as init:
        first = PageRenderer.get()
        second = PageRenderer.get()
    assert first is second
    init.assert_called_once()


def test_factory_dispatch():
    assert isinstance(ParserFactory.get_parser("CSV"), CSVParser)
    assert isinstance(ParserFactory.get_parser("docx"), DocxParser)
    with pytest.raises(UnsupportedFormatError, match="xlsx"):
        ParserFactory.get_parser("xls")
    with pytest.raises(UnsupportedFormatError, match="docx"):
        ParserFactory.get_parser("doc")
    with pytest.raises(UnsupportedFormatError):
        ParserFactory.get_parser("png")


def test_sniff_delimiter():
    assert sniff_delimiter(["a;b;c", "1;2,5;3"]) == ";"
    assert sniff_delimiter(["a\tb\tc", "x, y\t1\t2"]) == "\t"
    assert sniff_delimiter(['a,b', '"1;2",3']) == ","
    assert sniff_delimiter(["single column"]) == ","


def test_semicolon_csv():
    content = (
        "Account Number : 1234567890\n"
        "Txn Date;Value Date;Description;Ref No;Debit;Credit;Balance\n"
        "01/11/2025;01/11/2025;NEFT ACME;N123;;1,000.00;5,000.00\n"
    ).encode("utf-8")
    grid = CSVParser().parse(RawDocument.from_upload("s.csv", content))["grid"]
    rows = TabularReader().read(grid)
    assert rows == [{
        "Txn Date": "01/11/2025", "Value Date": "01/11/2025", "Description": "NEFT ACME",
        "Ref No": "N123", "Credit": "1,000.00", "Balance": "5,000.00",
    }]


def test_tab_separated_csv():
    content = (
        "Txn Date\tValue Date\tDescription\tDebit\tCredit\tBalance\n"
        "05/11/2025\t05/11/2025\tATM, MG ROAD\t2,000.00\t\t48,000.00\n"
    ).encode("utf-8")
    grid = CSVParser().parse(RawDocument.from_upload("s.csv", content))["grid"]
    rows = TabularReader().read(grid)
    assert rows[0]["Description"] == "ATM, MG ROAD"
    assert rows[0]["Debit"] == "2,000.00"
    assert "Credit" not in rows[0]


def test_docx_keeps_document_order_and_merged_cells_once():
    import io
    from docx import Document

    doc = Document()
    doc.add_paragraph("Statement of account")
    table = doc.add_table(rows=2, cols=3)
    merged = table.cell(0, 0).merge(table.cell(0, 1))
    merged.text = "Opening"
    table.cell(0, 2).text = "5,000.00"
    for j, text in enumerate(["a", "b", "c"]):
        table.cell(1, j).text = text
    doc.add_paragraph("Closing note")
    buffer = io.BytesIO()
    doc.save(buffer)

    payload = DocxParser().parse(RawDocument.from_upload("s.docx", buffer.getvalue()))
    assert payload["lines"] == ["Statement of account", "Opening\t5,000.00", "a\tb\tc", "Closing note"]
