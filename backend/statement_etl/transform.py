"""
Field Normalizer - keyed rows to canonical TransactionRecords.

This module implements:
1. Column key normalization ('Ref No./Cheque No.' -> 'refnochequeno')
2. Credit / debit column detection (exact aliases, then keywords)
3. Polarity: the first positive amount on each side
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from .dedupe import ALL_IDENTIFIER_FRAGMENTS
from .patterns import normalize_key, parse_currency
from .schema import FIELD_ALIASES, TransactionRecord

CREDIT_KEYWORDS = ["credit", "cr", "deposit", "received", "income", "in"]
DEBIT_KEYWORDS = ["debit", "dr", "withdrawal", "paid", "expense", "out"]

# Keys that carry some other canonical field never hold polarity.
_NON_AMOUNT_KEYS = {
    alias
    for name, aliases in FIELD_ALIASES.items()
    if name not in ("credit_amount", "debit_amount")
    for alias in aliases
}

# Currency text: optional sign / parentheses / symbol around a grouped number.
_CURRENCY_TEXT = re.compile(r'^\(?-?\s*(?:₹|rs\.?|inr|\$)?\s*-?[\d,]*\.?\d+\s*(?:cr|dr)?\)?$', re.I)


def amount_value(value: Any) -> Optional[float]:
    """Numeric value of a money cell, or None when the cell is not money."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text or not _CURRENCY_TEXT.match(text):
        return None
    return parse_currency(text)


def _excluded(key: str) -> bool:
    if key in _NON_AMOUNT_KEYS or "balance" in key:
        return True
    return any(f in key for f in ALL_IDENTIFIER_FRAGMENTS)


def polarity_columns(keys: Sequence[str], aliases: Sequence[str],
                     keywords: Sequence[str], opposite: Sequence[str]) -> List[str]:
    """Exact alias columns first, then keyword columns, in column order."""
    exact = [k for k in keys if k in aliases]
    fuzzy = [
        k for k in keys
        if k not in exact
        and not _excluded(k)
        and any(kw in k for kw in keywords)
        and not any(kw in k for kw in opposite)
    ]
    return exact + fuzzy


def _first_positive(values: Dict[str, Any], columns: List[str]) -> Optional[float]:
    for column in columns:
        amount = amount_value(values.get(column))
        if amount is not None and amount > 0:
            return amount
    return None


class FieldNormalizer:
    """
    Builds TransactionRecords from rows keyed by original headers.

    Values are kept as read; only keys are normalized. Two headers that
    normalize to the same key are kept apart with a numeric suffix.
    """

    def __init__(self):
        self.credit_keywords = list(CREDIT_KEYWORDS)
        self.debit_keywords = list(DEBIT_KEYWORDS)

    def normalize(self, rows: List[Dict[str, Any]]) -> List[TransactionRecord]:
        records = [self.normalize_row(row) for row in rows]
        ambiguous = sum(1 for r in records if r.polarity == "ambiguous")
        logging.info(f"Normalized {len(records)} records ({ambiguous} with both credit and debit)")
        return records

    def normalize_row(self, row: Dict[str, Any]) -> TransactionRecord:
        values: Dict[str, Any] = {}
        headers: Dict[str, str] = {}
        for header, value in row.items():
            key = normalize_key(header) or "column"
            base, n = key, 1
            while key in values:
                n += 1
                key = f"{base}{n}"
            values[key] = value
            headers[key] = str(header)

        keys = list(values)
        credit_cols = polarity_columns(keys, FIELD_ALIASES["credit_amount"],
                                       self.credit_keywords, self.debit_keywords)
        debit_cols = polarity_columns(keys, FIELD_ALIASES["debit_amount"],
                                      self.debit_keywords, self.credit_keywords)
        return TransactionRecord(
            values, headers,
            credit_amount=_first_positive(values, credit_cols),
            debit_amount=_first_positive(values, debit_cols),
        )

    def get_keywords(self) -> Dict[str, List[str]]:
        """Return the polarity keyword lists for transparency."""
        return {"credit": list(self.credit_keywords), "debit": list(self.debit_keywords)}
