"""
Aggregates and views over parsed records.

Records carrying both a credit and a debit amount are ambiguous: they stay in
the 'all' view but are left out of the credit / debit views and totals and
are counted on their own.
"""
from typing import Any, Dict, List, Sequence, Tuple

from .schema import POLARITY_AMBIGUOUS, POLARITY_CREDIT, POLARITY_DEBIT, TransactionRecord

SERIAL_COLUMN = "Serial No"
TRANSACTION_TYPES = ("all", POLARITY_CREDIT, POLARITY_DEBIT)


def summarize(records: Sequence[TransactionRecord]) -> Dict[str, Any]:
    credit_total = sum(r.credit_amount for r in records if r.polarity == POLARITY_CREDIT)
    debit_total = sum(r.debit_amount for r in records if r.polarity == POLARITY_DEBIT)
    return {
        "total_count": len(records),
        "credit_total": round(credit_total, 2),
        "debit_total": round(debit_total, 2),
        "net_balance": round(credit_total - debit_total, 2),
        "ambiguous_count": sum(1 for r in records if r.polarity == POLARITY_AMBIGUOUS),
    }


def filter_by_polarity(records: Sequence[TransactionRecord],
                       kind: str = "all") -> List[Tuple[int, TransactionRecord]]:
    """(index, record) pairs of the requested view, in input order."""
    kind = (kind or "all").lower()
    if kind not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type: {kind}")
    if kind == "all":
        return list(enumerate(records))
    return [(i, r) for i, r in enumerate(records) if r.polarity == kind]


def detect_dominant_polarity(records: Sequence[TransactionRecord]) -> str:
    """Majority side; ties and empty input count as credit."""
    credits = sum(1 for r in records if r.polarity == POLARITY_CREDIT)
    debits = sum(1 for r in records if r.polarity == POLARITY_DEBIT)
    return POLARITY_DEBIT if debits > credits else POLARITY_CREDIT


def number_records(records: Sequence[TransactionRecord], start: int = 1) -> List[Dict[str, Any]]:
    """New display rows with a serial column; the records stay untouched."""
    return [
        {SERIAL_COLUMN: n, **record.to_dict(original_headers=True)}
        for n, record in enumerate(records, start=start)
    ]
