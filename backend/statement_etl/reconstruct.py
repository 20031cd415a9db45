"""
Page-Text Reconstructor - rebuilds statement lines from positioned text.

Page-based documents expose positioned fragments, not tables. Fragments on
the same rounded vertical coordinate form one line; a horizontal gap wider
than COLUMN_GAP_RATIO x the previous fragment's width becomes a column
separator, anything narrower a plain space.

No formal guarantee holds across layouts; this is tuned on regional bank
statements and validated against sample documents.
"""
from collections import defaultdict
from typing import Dict, Iterable, List

from .config import Config
from .schema import TextItem


def reconstruct_page(items: Iterable[TextItem],
                     y_digits: int = Config.Y_ROUND_DIGITS,
                     gap_ratio: float = Config.COLUMN_GAP_RATIO,
                     separator: str = Config.COLUMN_SEPARATOR) -> List[str]:
    rows_by_y: Dict[float, List[TextItem]] = defaultdict(list)
    for item in items:
        if not item.text:
            continue
        rows_by_y[round(item.y, y_digits)].append(item)

    lines = []
    for y in sorted(rows_by_y):  # top of page first
        row = sorted(rows_by_y[y], key=lambda i: i.x)
        parts = [row[0].text]
        for prev, item in zip(row, row[1:]):
            gap = item.x - (prev.x + prev.width)
            parts.append(separator if gap > prev.width * gap_ratio else " ")
            parts.append(item.text)
        line = "".join(parts)
        if line.strip():
            lines.append(line)
    return lines


def reconstruct(pages: Iterable[Iterable[TextItem]], **options) -> List[str]:
    """Reconstruct every page in order and concatenate the lines."""
    lines: List[str] = []
    for page in pages:
        lines.extend(reconstruct_page(page, **options))
    return lines
