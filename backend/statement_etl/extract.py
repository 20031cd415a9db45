"""
Extraction layer - turns a RawDocument into either a cell grid or text lines.

Tabular sources (CSV, XLSX) produce a grid that the TabularReader turns into
keyed rows. Page-based and word-processor sources (PDF, DOCX, TXT) produce
reconstructed lines for the Statement Row Classifier.

Every parser returns a payload:
{
    "kind": "grid" | "lines",
    "grid": [[cell, ...], ...],      # kind == "grid"
    "lines": ["...", ...],           # kind == "lines"
    "source_file": "statement.pdf",
}
"""
import csv
import io
import logging
import re
import threading
import zipfile
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

import openpyxl
import pandas as pd
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.table import CT_Tbl
from docx.oxml.text.paragraph import CT_P
from docx.table import Table
from docx.text.paragraph import Paragraph
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException

from .config import Config
from .errors import (
    EmptyInputError, NoDataError, RendererUnavailableError, UnsupportedFormatError,
)
from .filter import MetadataFilter, row_cells
from .patterns import count_label_matches, normalize_key
from .reconstruct import reconstruct
from .schema import STATEMENT_HEADERS, RawDocument, TextItem

HEADER_LABELS = [normalize_key(label) for label in STATEMENT_HEADERS.values()]

DISPLAY_DATE_FORMAT = "%d-%b-%y"


def _decode(content: bytes) -> str:
    return content.decode("utf-8-sig", errors="ignore")


# ─────────────────────────────────────────────────────────────
# Tabular Reader
# ─────────────────────────────────────────────────────────────

class TabularReader:
    """
    Grid -> keyed rows.

    Looks for the statement's column header within the first HEADER_SCAN_ROWS
    rows, skipping account-info lines; everything above it is discarded.
    Without a header the first non-empty row is used and metadata rows are
    dropped from the data.
    """

    def __init__(self, scan_rows: int = Config.HEADER_SCAN_ROWS,
                 min_matches: int = Config.HEADER_MIN_MATCHES,
                 metadata_filter: Optional[MetadataFilter] = None):
        self.scan_rows = scan_rows
        self.min_matches = min_matches
        self.metadata_filter = metadata_filter or MetadataFilter()

    def find_header(self, grid: List[List[Any]]) -> int:
        """Index of the header row, or -1."""
        for i, row in enumerate(grid[:self.scan_rows]):
            cells = row_cells(row)
            if not cells or self.metadata_filter.is_preheader_metadata(cells):
                continue
            if count_label_matches(cells, HEADER_LABELS) >= self.min_matches:
                return i
        return -1

    def read(self, grid: List[List[Any]]) -> List[Dict[str, Any]]:
        if not any(row_cells(row) for row in grid):
            raise EmptyInputError("File is empty")

        header_index = self.find_header(grid)
        drop_metadata = header_index < 0
        if drop_metadata:
            header_index = next(i for i, row in enumerate(grid) if row_cells(row))
            logging.info("No statement header found, using first non-empty row")
        else:
            logging.info(f"Statement header found at row {header_index}")

        headers = ["" if h is None else str(h).strip() for h in grid[header_index]]
        rows = []
        for raw in grid[header_index + 1:]:
            row = {}
            for j, header in enumerate(headers):
                if not header or j >= len(raw):
                    continue
                value = raw[j]
                if value is None or (isinstance(value, str) and not value.strip()):
                    continue
                row[header] = value.strip() if isinstance(value, str) else value
            if not row:
                continue
            if drop_metadata and self.metadata_filter.is_metadata(row):
                logging.debug(f"Metadata row dropped: {row}")
                continue
            rows.append(row)

        if not rows:
            raise NoDataError("No data found in file")
        return rows


# ─────────────────────────────────────────────────────────────
# Parsers
# ─────────────────────────────────────────────────────────────

class BaseParser(ABC):
    kind = "grid"

    @abstractmethod
    def parse(self, document: RawDocument) -> Dict[str, Any]:
        pass

    def _payload(self, document: RawDocument, data: List[Any]) -> Dict[str, Any]:
        return {"kind": self.kind, self.kind: data, "source_file": document.filename}


CSV_DELIMITERS = [',', ';', '\t', '|']


def sniff_delimiter(lines: List[str]) -> str:
    """The candidate splitting the most fields outside quotes; comma on ties."""
    best, best_score = ',', 0
    for delimiter in CSV_DELIMITERS:
        score = sum(len(fields) - 1 for fields in csv.reader(lines, delimiter=delimiter))
        if score > best_score:
            best, best_score = delimiter, score
    return best


class CSVParser(BaseParser):
    def parse(self, document: RawDocument) -> Dict[str, Any]:
        text = _decode(document.content)
        lines = text.splitlines()
        if not any(line.strip() for line in lines):
            raise EmptyInputError("File is empty")

        # Metadata lines above the header are shorter than the table rows;
        # naming every column up front keeps pandas from rejecting wider rows.
        sep = sniff_delimiter(lines)
        max_cols = max(len(fields) for fields in csv.reader(lines, delimiter=sep))
        try:
            df = pd.read_csv(io.StringIO(text), sep=sep, header=None, dtype=str,
                             keep_default_na=False, names=list(range(max_cols)),
                             skip_blank_lines=True)
        except pd.errors.EmptyDataError as exc:
            raise EmptyInputError("File is empty") from exc
        except pd.errors.ParserError as exc:
            raise UnsupportedFormatError(f"Could not parse delimited file: {exc}") from exc

        logging.info(f"Read CSV {document.filename}: {len(df)} lines, {max_cols} columns, delimiter {sep!r}")
        return self._payload(document, df.fillna("").values.tolist())


def format_cell(value: Any, number_format: str = "General", date_column: bool = False) -> Any:
    """
    Spreadsheet cell -> the value the sheet displays.

    Dates become DD-Mon-YY. Numbers in a date column are day serials.
    Strings are kept verbatim so '3/11/25' is never reinterpreted.
    """
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime(DISPLAY_DATE_FORMAT)
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        if date_column:
            try:
                return from_excel(value).strftime(DISPLAY_DATE_FORMAT)
            except (ValueError, OverflowError, TypeError):
                pass
        if isinstance(value, float):
            if "0.00" in (number_format or ""):
                return f"{value:.2f}"
            if value.is_integer():
                return str(int(value))
        return str(value)
    return value


class SpreadsheetParser(BaseParser):
    """XLSX via openpyxl; first worksheet, displayed values."""

    def __init__(self, reader: Optional[TabularReader] = None):
        self.reader = reader or TabularReader()

    def parse(self, document: RawDocument) -> Dict[str, Any]:
        try:
            workbook = openpyxl.load_workbook(io.BytesIO(document.content), data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
            raise UnsupportedFormatError(f"Could not open spreadsheet: {exc}") from exc

        sheet = workbook.worksheets[0]
        cells = [list(row) for row in sheet.iter_rows()]
        raw = [[cell.value for cell in row] for row in cells]
        workbook.close()

        header_index = self.reader.find_header(raw)
        if header_index < 0:
            header_index = next((i for i, row in enumerate(raw) if row_cells(row)), 0)
        header = raw[header_index] if raw else []
        date_columns = {j for j, h in enumerate(header) if h is not None and "date" in str(h).lower()}

        grid = []
        for i, row in enumerate(cells):
            grid.append([
                format_cell(cell.value, cell.number_format,
                            date_column=i > header_index and j in date_columns)
                for j, cell in enumerate(row)
            ])
        logging.info(f"Read sheet '{sheet.title}' from {document.filename}: {len(grid)} rows")
        return self._payload(document, grid)


class TextParser(BaseParser):
    kind = "lines"

    def parse(self, document: RawDocument) -> Dict[str, Any]:
        lines = [line for line in _decode(document.content).splitlines() if line.strip()]
        return self._payload(document, lines)


class PageRenderer:
    """
    Process-wide pdfplumber handle.

    pdfplumber is imported on first use; get() serializes that first
    initialization, afterwards the instance is only read.
    """

    _instance = None
    _lock = threading.Lock()

    def __init__(self, backend=None):
        if backend is None:
            try:
                import pdfplumber as backend
            except ImportError as exc:
                raise RendererUnavailableError("PDF renderer (pdfplumber) is not installed") from exc
        self.backend = backend

    @classmethod
    def get(cls) -> "PageRenderer":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def render(self, content: bytes) -> List[List[TextItem]]:
        try:
            pdf = self.backend.open(io.BytesIO(content))
        except Exception as exc:
            raise RendererUnavailableError(f"Could not open PDF: {exc}") from exc

        pages = []
        with pdf:
            for page in pdf.pages:
                words = page.extract_words(keep_blank_chars=True)
                pages.append([
                    TextItem(text=w["text"], x=float(w["x0"]), y=float(w["top"]),
                             width=float(w["x1"]) - float(w["x0"]),
                             height=float(w["bottom"]) - float(w["top"]))
                    for w in words
                ])
        return pages


class PDFParser(BaseParser):
    kind = "lines"

    def parse(self, document: RawDocument) -> Dict[str, Any]:
        logging.info(f"Rendering PDF: {document.filename}")
        pages = PageRenderer.get().render(document.content)
        lines = reconstruct(pages)
        logging.info(f"Reconstructed {len(lines)} lines from {len(pages)} pages")
        return self._payload(document, lines)


class DocxParser(BaseParser):
    """
    Body paragraphs and table rows in document order; table cells are joined
    by the column separator. A merged cell repeats in row.cells and is kept once.
    """
    kind = "lines"

    def parse(self, document: RawDocument) -> Dict[str, Any]:
        try:
            doc = Document(io.BytesIO(document.content))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as exc:
            raise UnsupportedFormatError(f"Could not open DOCX: {exc}") from exc

        lines = []
        for child in doc.element.body.iterchildren():
            if isinstance(child, CT_P):
                text = Paragraph(child, doc).text
                if text.strip():
                    lines.append(text)
            elif isinstance(child, CT_Tbl):
                lines.extend(self._table_lines(Table(child, doc)))
        return self._payload(document, lines)

    def _table_lines(self, table: Table) -> List[str]:
        lines = []
        for row in table.rows:
            texts = []
            previous = None
            for cell in row.cells:
                if previous is not None and cell._tc is previous:
                    continue
                previous = cell._tc
                texts.append(cell.text.strip())
            line = Config.COLUMN_SEPARATOR.join(texts)
            if line.strip():
                lines.append(line)
        return lines


# ─────────────────────────────────────────────────────────────
# Keyed-line fallback (word-processor documents without a statement layout)
# ─────────────────────────────────────────────────────────────

KEYED_HEADER_KEYWORDS = [
    'date', 'amount', 'name', 'invoice', 'voucher', 'particulars',
    'credit', 'debit', 'transaction', 'description',
]
POSITIONAL_KEYS = ['date', 'name', 'amount', 'description', 'invoice', 'voucher']
_KEYED_SPLIT = re.compile(r'\t|\s{3,}|,\s*')


def _split_keyed(line: str) -> List[str]:
    return [p.strip() for p in _KEYED_SPLIT.split(line) if p.strip()]


def parse_keyed_lines(lines: List[str],
                      scan_lines: int = Config.DOCX_HEADER_SCAN_LINES) -> List[Dict[str, str]]:
    """
    Rows from free-form lines.

    A header is a line within the first scan_lines mentioning one of
    KEYED_HEADER_KEYWORDS and splitting into 2+ cells. Without one, cells get
    positional keys (date, name, amount, ...). Lines with fewer than two
    cells are skipped.
    """
    headers: List[str] = []
    rows = []
    for i, line in enumerate(l.strip() for l in lines if l.strip()):
        if i < scan_lines and not headers:
            lower = line.lower()
            if any(k in lower for k in KEYED_HEADER_KEYWORDS):
                candidate = _split_keyed(line)
                if len(candidate) >= 2:
                    headers = candidate
                    continue

        parts = _split_keyed(line)
        if len(parts) < 2:
            continue
        if headers:
            row = {h: parts[j] for j, h in enumerate(headers) if j < len(parts)}
        else:
            row = {(POSITIONAL_KEYS[j] if j < len(POSITIONAL_KEYS) else f"column{j + 1}"): part
                   for j, part in enumerate(parts)}
        if row:
            rows.append(row)
    logging.info(f"Keyed-line fallback produced {len(rows)} rows (header: {bool(headers)})")
    return rows


# ─────────────────────────────────────────────────────────────
# Format dispatch
# ─────────────────────────────────────────────────────────────

# Legacy binary formats: detected, never parsed.
CONVERT_HINTS = {
    'xls': "Legacy .xls workbooks are not supported; save the file as .xlsx and upload again",
    'doc': "Legacy .doc documents are not supported; save the file as .docx and upload again",
}


class ParserFactory:
    PARSERS = {
        'csv': CSVParser,
        'txt': TextParser,
        'xlsx': SpreadsheetParser,
        'pdf': PDFParser,
        'docx': DocxParser,
    }

    @staticmethod
    def get_parser(file_type: str) -> BaseParser:
        ft = (file_type or "").lower().lstrip('.')
        if ft in CONVERT_HINTS:
            raise UnsupportedFormatError(CONVERT_HINTS[ft])
        parser_cls = ParserFactory.PARSERS.get(ft)
        if parser_cls is None:
            raise UnsupportedFormatError(f"Unsupported file format: {file_type}")
        return parser_cls()
