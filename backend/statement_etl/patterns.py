"""
Shared token patterns - dates, amounts and column keys.

Every stage (reader, filter, classifier, normalizer) recognizes the same
date and amount shapes, so they are defined once here.
"""
import re
from typing import Any, Iterable, Optional, Sequence

MONTHS = r'(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*'

NUMERIC_DATE = r'\d{1,2}[-/]\d{1,2}[-/]\d{2,4}'
ALPHA_DATE = rf'\d{{1,2}}[\s-]+{MONTHS}[\s-]+\d{{2,4}}'

# D/M/YY[YY] or D MMM YYYY, anywhere in a line
DATE_PATTERN = re.compile(rf'(?<![\d/-])(?:{NUMERIC_DATE}|{ALPHA_DATE})(?![\d/])', re.I)
LEADING_DATE_PATTERN = re.compile(rf'^\s*({NUMERIC_DATE}|{ALPHA_DATE})(?![\d/])', re.I)

# Amount-shaped: needs a decimal part or thousands grouping, so bare branch
# codes and years do not read as money.
AMOUNT_PATTERN = re.compile(
    r'^\(?-?(?:₹|rs\.?|inr|\$)?\s*'
    r'(?:\d{1,3}(?:,\d{2,3})+(?:\.\d{1,2})?|\d+\.\d{1,2})'
    r'\)?$',
    re.I,
)

_NON_KEY_CHARS = re.compile(r'[^a-z0-9]')
_NON_AMOUNT_CHARS = re.compile(r'[^\d,.\-]')
_NUMBER = re.compile(r'-?\d+(?:\.\d+)?')


def normalize_key(key: Any) -> str:
    """'Ref No./Cheque No.' -> 'refnochequeno'"""
    return _NON_KEY_CHARS.sub('', str(key).strip().lower())


def is_date(text: Any) -> bool:
    return bool(text) and bool(re.fullmatch(rf'\s*(?:{NUMERIC_DATE}|{ALPHA_DATE})\s*', str(text), re.I))


def has_date(text: Any) -> bool:
    return bool(text) and DATE_PATTERN.search(str(text)) is not None


def is_amount(text: Any) -> bool:
    return bool(text) and AMOUNT_PATTERN.match(str(text).strip()) is not None


def count_label_matches(cells: Iterable[Any], labels: Sequence[str]) -> int:
    """
    How many normalized labels appear in a row.

    A label matches when some normalized cell contains it or is contained by
    it, so 'Txn Date' matches 'txndate' and 'Date' matches 'txndate' too.
    """
    keys = [normalize_key(c) for c in cells if c is not None]
    keys = [k for k in keys if k]
    return sum(1 for label in labels if any(k in label or label in k for k in keys))


def parse_currency(value: Any) -> Optional[float]:
    """
    Parse a displayed currency value.

    Everything except digits, comma, dot and minus is stripped, thousands
    separators are dropped and the first number is read:
    '₹ 1,23,456.00' -> 123456.0. Returns None when nothing numeric is left.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NON_AMOUNT_CHARS.sub('', str(value)).replace(',', '')
    match = _NUMBER.search(cleaned)
    if not match:
        return None
    return float(match.group(0))
