"""
Statement Pipeline Orchestrator - Coordinates Extract, Filter, Normalize and Dedupe.

Flow: Extract → (Tabular Reader | Reconstruct → Classify) → Filter → Normalize → Dedupe

The orchestrator owns no per-document state: each parse() call builds its
own rows and records, so one pipeline can serve every request.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from .classify import StatementClassifier
from .config import Config
from .dedupe import dedupe, find_identifier_column
from .errors import EmptyInputError, NoDataError
from .extract import ParserFactory, TabularReader, parse_keyed_lines
from .filter import MetadataFilter
from .schema import ParseResult, RawDocument
from .transform import FieldNormalizer


class StatementPipeline:

    def __init__(self):
        self.metadata_filter = MetadataFilter()
        self.reader = TabularReader(metadata_filter=self.metadata_filter)
        self.classifier = StatementClassifier()
        self.normalizer = FieldNormalizer()

    def parse(self, document: RawDocument, billing_type: str = Config.DEFAULT_BILLING_TYPE) -> ParseResult:
        start_time = time.time()
        logging.info(f"Parsing {document.filename or '<bytes>'} as {document.format} ({len(document.content)} bytes)")

        # ─── 1. Extract ───
        parser = ParserFactory.get_parser(document.format)
        payload = parser.parse(document)

        # ─── 2. Rows ───
        if payload["kind"] == "grid":
            rows, period = self._rows_from_grid(payload["grid"])
        else:
            rows, period = self._rows_from_lines(payload["lines"], document.format)

        # ─── 3. Filter ───
        rows = self.metadata_filter.filter_rows(rows)
        if not rows:
            raise NoDataError("No valid data found after filtering metadata")

        # ─── 4. Normalize ───
        records = self.normalizer.normalize(rows)

        # ─── 5. Dedupe ───
        column = find_identifier_column(records, billing_type)
        unique = dedupe(records, column)

        processing_time = (time.time() - start_time) * 1000
        logging.info(
            f"Parsed {document.filename or '<bytes>'}: {len(records)} records, "
            f"{len(unique)} unique (identifier: {column}) in {processing_time:.0f}ms"
        )
        return ParseResult(
            records=tuple(unique),
            original_count=len(records),
            unique_count=len(unique),
            identifier_column=column,
            period_start=period[0],
            period_end=period[1],
        )

    def parse_file(self, file_path: str, billing_type: str = Config.DEFAULT_BILLING_TYPE) -> ParseResult:
        return self.parse(RawDocument.from_path(file_path), billing_type)

    def _rows_from_grid(self, grid: List[List[Any]]) -> Tuple[List[Dict[str, Any]], Tuple[Optional[str], Optional[str]]]:
        period = self.metadata_filter.extract_period(grid)
        return self.reader.read(grid), period

    def _rows_from_lines(self, lines: List[str], fmt: str) -> Tuple[List[Dict[str, Any]], Tuple[Optional[str], Optional[str]]]:
        if not any(line.strip() for line in lines):
            raise EmptyInputError("File is empty")
        period = self.metadata_filter.extract_period(lines)
        kept = self.metadata_filter.filter_lines(lines)
        rows = self.classifier.classify(kept)
        if not rows and fmt == "docx":
            logging.info("No statement lines found in DOCX, trying keyed-line fallback")
            rows = parse_keyed_lines(kept)
        return rows, period
