"""
Metadata Filter - Separates transaction rows from statement boilerplate.

Bank statements carry, around the actual transactions:
- account details (account number, IFS code, currency, address)
- balance summaries (book / available / hold / mod balance)
- the statement period (start date / end date)

The filter drops those rows and pulls the statement period out of them.
It runs on raw rows before header discovery and again on extracted rows.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .patterns import DATE_PATTERN, has_date


# ─────────────────────────────────────────────────────────────
# Metadata Keywords
# ─────────────────────────────────────────────────────────────
# 'description' is deliberately absent: it is a transaction column.
METADATA_KEYWORDS = [
    "account number",
    "currency",
    "corporate address",
    "rate of interest",
    "ifs code",
    "book balance",
    "available balance",
    "hold value",
    "mod balance",
    "uncleared",
    "balance on",
    "start date",
    "end date",
]

# Only checked above the header row, where a 'Name :' line is account info.
PREHEADER_KEYWORDS = METADATA_KEYWORDS + ["name"]

_BRANCH_METADATA = re.compile(r'^\s*branch\s*:', re.I)
_CELL_SPLIT = re.compile(r'\t|\s{2,}')

Row = Union[str, Sequence[Any], Dict[str, Any]]


def _keyword_regex(keyword: str) -> re.Pattern:
    return re.compile(r'^\s*' + r'\s+'.join(map(re.escape, keyword.split())) + r'\s*:', re.I)


def row_cells(row: Row) -> List[str]:
    """Non-empty, stripped cell texts of a line, a cell list or a keyed row."""
    if isinstance(row, str):
        values: Iterable[Any] = _CELL_SPLIT.split(row)
    elif isinstance(row, dict):
        values = row.values()
    else:
        values = row
    cells = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            cells.append(text)
    return cells


class MetadataFilter:
    """
    Rule-based metadata detection.

    A row is metadata when:
    - its text starts with '<keyword> :', or
    - it has at most two cells, mentions a keyword and carries no date token.
    """

    def __init__(self, keywords: Optional[List[str]] = None):
        self.keywords = [kw.lower() for kw in (keywords or METADATA_KEYWORDS)]
        self._anchored = [_keyword_regex(kw) for kw in self.keywords]
        self._preheader = [_keyword_regex(kw) for kw in PREHEADER_KEYWORDS]

    def is_metadata(self, row: Row) -> bool:
        cells = row_cells(row)
        if not cells:
            return False
        row_text = " ".join(cells).lower()

        if any(p.search(row_text) for p in self._anchored):
            return True

        if len(cells) <= 2 and not has_date(row_text):
            return any(kw in row_text for kw in self.keywords)
        return False

    def is_preheader_metadata(self, row: Row) -> bool:
        """Stricter check used while scanning for the header row."""
        cells = row_cells(row)
        if not cells:
            return False
        row_text = " ".join(cells).lower()
        if _BRANCH_METADATA.search(row_text) and "branch code" not in row_text:
            return True
        return any(p.search(row_text) for p in self._preheader)

    def filter_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Drop empty and metadata rows, keeping order."""
        kept = []
        for row in rows:
            if not row_cells(row):
                continue
            if self.is_metadata(row):
                logging.debug(f"Metadata row dropped: {row}")
                continue
            kept.append(row)
        return kept

    def filter_lines(self, lines: List[str]) -> List[str]:
        return [line for line in lines if line.strip() and not self.is_metadata(line)]

    def extract_period(self, rows: Iterable[Row]) -> Tuple[Optional[str], Optional[str]]:
        """
        Find the statement period.

        Returns (period_start, period_end): the first date token following
        'start date' / 'end date', else the first date-bearing cell of that row.
        """
        start = end = None
        for row in rows:
            cells = row_cells(row)
            if not cells:
                continue
            row_text = " ".join(cells)
            lower = row_text.lower()
            if start is None and "start date" in lower:
                start = self._date_after("start", row_text, cells)
            if end is None and "end date" in lower:
                end = self._date_after("end", row_text, cells)
            if start and end:
                break
        return start, end

    def _date_after(self, label: str, row_text: str, cells: List[str]) -> Optional[str]:
        match = re.search(rf'{label}\s+date\s*:?\s*', row_text, re.I)
        if match:
            date = DATE_PATTERN.match(row_text, match.end())
            if date:
                return date.group(0).strip()
        for cell in cells:
            date = DATE_PATTERN.search(cell)
            if date:
                return date.group(0).strip()
        return None

    def get_keywords(self) -> List[str]:
        """Return the metadata keyword list for transparency."""
        return list(self.keywords)
