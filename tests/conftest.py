"""
Pytest configuration for the statement parser tests.

Puts the repository root on the path so `backend.statement_etl` imports, and
provides in-memory document builders.
"""
import io
import os
import sys

import pytest

# Log to stderr instead of server.log while testing
os.environ.setdefault('LOG_FILE', '')

root_path = os.path.join(os.path.dirname(__file__), '..')
if root_path not in sys.path:
    sys.path.insert(0, root_path)


@pytest.fixture
def make_xlsx():
    """Build an .xlsx from rows of cell values."""
    import openpyxl

    def build(rows):
        workbook = openpyxl.Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(row)
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()
    return build


@pytest.fixture
def make_docx():
    """Build a .docx from paragraphs and optional table rows."""
    from docx import Document

    def build(paragraphs, table_rows=None):
        doc = Document()
        for text in paragraphs:
            doc.add_paragraph(text)
        if table_rows:
            table = doc.add_table(rows=len(table_rows), cols=len(table_rows[0]))
            for i, row in enumerate(table_rows):
                for j, value in enumerate(row):
                    table.cell(i, j).text = value
        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()
    return build


@pytest.fixture
def statement_csv():
    return (
        "Account Number : 1234567890\n"
        "Start Date : 01/11/2025\n"
        "End Date : 30/11/2025\n"
        "Txn Date,Value Date,Description,Ref No./Cheque No.,Debit,Credit\n"
        "01/11/2025,01/11/2025,NEFT ACME,N123,,\"1,000.00\"\n"
        "02/11/2025,02/11/2025,ATM CASH,,500.00,\n"
    ).encode("utf-8")
