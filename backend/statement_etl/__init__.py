"""
Statement ETL Package - Bank Statement to Canonical Transaction Records

Modules:
- extract: CSV/XLSX/PDF/DOCX/TXT reading and the tabular header discovery
- reconstruct: page text fragments to lines
- classify: statement lines to rows (dates, reference, branch, amounts)
- filter: metadata rows and the statement period
- transform: canonical records and credit/debit polarity
- dedupe: identifier column and first-wins deduplication
- summary: totals and credit/debit views
- pipeline: main orchestrator
- schema: record types
"""
from .errors import (
    EmptyInputError, NoDataError, RendererUnavailableError,
    StatementParseError, UnsupportedFormatError,
)
from .pipeline import StatementPipeline
from .schema import ParseResult, RawDocument, TransactionRecord

__all__ = [
    'StatementPipeline', 'RawDocument', 'ParseResult', 'TransactionRecord',
    'StatementParseError', 'UnsupportedFormatError', 'EmptyInputError',
    'NoDataError', 'RendererUnavailableError',
]
