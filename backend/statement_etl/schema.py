"""
Statement Schema - canonical record types shared by every ETL layer.

Records are keyed by normalized column key ('Txn Date' -> 'txndate') with a
side table back to the original header, so arbitrary bank columns survive
next to the canonical fields.
"""
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

# Canonical fields and the normalized column keys that can carry them, most
# specific first.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "transaction_date": ("txndate", "transactiondate", "trandate", "transdate", "postdate", "date"),
    "value_date": ("valuedate", "valdate"),
    "description": ("description", "particulars", "narration", "details", "desc"),
    "reference_number": ("refnochequeno", "refno", "referenceno", "referencenumber", "chequeno", "chqno", "utrno"),
    "branch_code": ("branchcode", "brcode"),
    "debit_amount": ("debit", "dr", "withdrawal", "withdrawals", "withdrawalamt", "debitamount"),
    "credit_amount": ("credit", "cr", "deposit", "deposits", "depositamt", "creditamount"),
    "balance": ("balance", "closingbalance", "bal"),
}

CANONICAL_FIELDS = tuple(FIELD_ALIASES)

# Display labels the classifier writes, which are also the labels tabular
# header discovery looks for.
STATEMENT_HEADERS: Dict[str, str] = {
    "transaction_date": "Txn Date",
    "value_date": "Value Date",
    "description": "Description",
    "reference_number": "Ref No./Cheque No.",
    "branch_code": "Branch Code",
    "debit_amount": "Debit",
    "credit_amount": "Credit",
    "balance": "Balance",
}

POLARITY_CREDIT = "credit"
POLARITY_DEBIT = "debit"
POLARITY_AMBIGUOUS = "ambiguous"


@dataclass
class RawDocument:
    """Input bytes tagged with a format kind; consumed once by the pipeline."""
    content: bytes
    format: str
    filename: Optional[str] = None

    @classmethod
    def from_upload(cls, filename: str, content: bytes) -> "RawDocument":
        ext = os.path.splitext(filename)[1].lstrip('.').lower()
        return cls(content=content, format=ext, filename=filename)

    @classmethod
    def from_path(cls, file_path: str) -> "RawDocument":
        with open(file_path, "rb") as f:
            content = f.read()
        return cls.from_upload(os.path.basename(file_path), content)


@dataclass(frozen=True)
class TextItem:
    """One positioned text fragment from a rendered page (y grows downward)."""
    text: str
    x: float
    y: float
    width: float
    height: float = 0.0


class TransactionRecord(Mapping):
    """
    Canonical transaction record.

    Read-only mapping of normalized key -> value. Canonical fields resolve
    through FIELD_ALIASES; credit/debit polarity is decided once by the
    Field Normalizer and passed in.
    """

    __slots__ = ("_values", "_headers", "_credit", "_debit")

    def __init__(self, values: Dict[str, Any], headers: Optional[Dict[str, str]] = None,
                 credit_amount: Optional[float] = None, debit_amount: Optional[float] = None):
        self._values = MappingProxyType(dict(values))
        self._headers = MappingProxyType({k: (headers or {}).get(k, k) for k in values})
        self._credit = credit_amount
        self._debit = debit_amount

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TransactionRecord):
            return (dict(self._values) == dict(other._values)
                    and dict(self._headers) == dict(other._headers)
                    and self._credit == other._credit
                    and self._debit == other._debit)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"TransactionRecord({dict(self._values)!r})"

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    def key_for(self, field_name: str) -> Optional[str]:
        """Normalized key holding a canonical field, if the record has one."""
        for alias in FIELD_ALIASES[field_name]:
            if alias in self._values:
                return alias
        return None

    def field(self, field_name: str) -> Any:
        key = self.key_for(field_name)
        value = self._values.get(key) if key else None
        return "" if value is None else value

    @property
    def transaction_date(self) -> Any:
        return self.field("transaction_date")

    @property
    def value_date(self) -> Any:
        return self.field("value_date") or self.transaction_date

    @property
    def description(self) -> Any:
        return self.field("description")

    @property
    def reference_number(self) -> Any:
        return self.field("reference_number")

    @property
    def branch_code(self) -> Any:
        return self.field("branch_code")

    @property
    def balance(self) -> Any:
        return self.field("balance")

    @property
    def credit_amount(self) -> Optional[float]:
        return self._credit

    @property
    def debit_amount(self) -> Optional[float]:
        return self._debit

    @property
    def polarity(self) -> Optional[str]:
        has_credit = self._credit is not None and self._credit > 0
        has_debit = self._debit is not None and self._debit > 0
        if has_credit and has_debit:
            return POLARITY_AMBIGUOUS
        if has_credit:
            return POLARITY_CREDIT
        if has_debit:
            return POLARITY_DEBIT
        return None

    def canonical(self) -> Dict[str, Any]:
        """The eight canonical fields, resolved through the alias table."""
        return {name: getattr(self, name) for name in CANONICAL_FIELDS}

    def to_dict(self, original_headers: bool = False) -> Dict[str, Any]:
        if original_headers:
            return {self._headers[k]: v for k, v in self._values.items()}
        return dict(self._values)


@dataclass(frozen=True)
class ParseResult:
    """Final output of one pipeline invocation."""
    records: Tuple[TransactionRecord, ...] = field(default_factory=tuple)
    original_count: int = 0
    unique_count: int = 0
    identifier_column: Optional[str] = None
    period_start: Optional[str] = None
    period_end: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "canonical": [r.canonical() for r in self.records],
            "original_count": self.original_count,
            "unique_count": self.unique_count,
            "identifier_column": self.identifier_column,
            "period_start": self.period_start,
            "period_end": self.period_end,
        }
