"""
Deduplicator - keeps the first record per document identifier.

Statements exported with invoice / voucher numbers repeat rows for the same
document; the identifier column depends on who is billed.
"""
import logging
from typing import List, Optional, Sequence

from .schema import TransactionRecord

# Preference order per billing type, as normalized key fragments.
IDENTIFIER_CANDIDATES = {
    "student": ["invoiceno", "invoicenumber", "invoice", "voucherno"],
    "vendor": ["voucherno", "vouchernumber", "voucher", "invoiceno"],
}

ALL_IDENTIFIER_FRAGMENTS = sorted({c for cands in IDENTIFIER_CANDIDATES.values() for c in cands})


def identifier_candidates(billing_type: str) -> List[str]:
    if (billing_type or "").lower() == "student":
        return IDENTIFIER_CANDIDATES["student"]
    return IDENTIFIER_CANDIDATES["vendor"]


def _column_order(records: Sequence[TransactionRecord]) -> List[str]:
    keys: List[str] = []
    seen = set()
    for record in records:
        for key in record:
            if key not in seen:
                seen.add(key)
                keys.append(key)
    return keys


def find_identifier_column(records: Sequence[TransactionRecord], billing_type: str) -> Optional[str]:
    """First candidate (by preference) contained in any normalized key."""
    keys = _column_order(records)
    for candidate in identifier_candidates(billing_type):
        for key in keys:
            if candidate in key:
                return key
    return None


def _identifier(record: TransactionRecord, column: str) -> str:
    value = record.get(column)
    return "" if value is None else str(value).strip()


def dedupe(records: Sequence[TransactionRecord], column: Optional[str]) -> List[TransactionRecord]:
    """
    Keep the first record per non-empty identifier, in input order.

    Records with an empty or missing identifier are always kept.
    """
    if not column:
        return list(records)

    seen = set()
    unique = []
    for record in records:
        value = _identifier(record, column)
        if value:
            if value in seen:
                continue
            seen.add(value)
        unique.append(record)

    if len(unique) != len(records):
        logging.info(f"Dedup on '{column}': {len(records)} -> {len(unique)} records")
    return unique
