"""
Statement Row Classifier - turns reconstructed statement lines into rows.

Any line carrying a date token is a transaction line. Each one runs through
an ordered cascade of steps; every step reads and fills a per-line state and
either claims a field or passes through:

1. segment the line (column separators, wide spacing, word grouping)
2. leading dates -> transaction date, value date
3. reference / branch candidates before the amount run
4. description = everything between the dates and the amount run
5. reference re-scan inside the description
6. branch code re-scan at the end of the description
7. amounts -> debit / credit / balance using the description's leaning

Output rows are keyed by the statement display labels ('Txn Date', 'Debit',
...) so they go through the same Field Normalizer as spreadsheet rows.
Statements only encode the transaction type implicitly; unfamiliar layouts
can be misclassified.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from .config import Config
from .patterns import (
    DATE_PATTERN, LEADING_DATE_PATTERN, MONTHS,
    count_label_matches, is_amount, is_date, normalize_key, parse_currency,
)
from .schema import STATEMENT_HEADERS

HEADER_LABELS = [normalize_key(label) for label in STATEMENT_HEADERS.values()]

# Upper-case words that look like references but are narration text.
STOP_WORDS = {
    "TRANSFER", "INFORMATION", "TECHNOLOGY", "SOLUTIONS", "SOLUTI", "INB",
    "FROM", "TO", "PAYMENT", "DEPOSIT", "WITHDRAWAL", "BALANCE",
}

CREDIT_LEANING = re.compile(
    r'credit|\bcr\b|deposit|received|transfer\s+from|by\s+transfer|\bchq\b', re.I)
DEBIT_LEANING = re.compile(
    r'debit|\bdr\b|withdrawal|paid|transfer\s+to|to\s+transfer|\batm\b|\bwdl\b', re.I)

_COLUMN_SPLIT = re.compile(r'\t')
_WIDE_SPLIT = re.compile(r'\t|\s{2,}')
_MONTH_TOKEN = re.compile(rf'^{MONTHS}$', re.I)


@dataclass
class _LineState:
    """Everything one line's cascade knows; created fresh per line."""
    line: str
    segments: List[str] = field(default_factory=list)
    segmentation: str = ""
    dates: List[str] = field(default_factory=list)
    rest: List[str] = field(default_factory=list)
    boundary: int = 0
    claimed: Set[int] = field(default_factory=set)
    description: str = ""
    reference: str = ""
    branch: str = ""
    debit: str = ""
    credit: str = ""
    balance: str = ""


# ─────────────────────────────────────────────────────────────
# Step 1: Segmentation
# ─────────────────────────────────────────────────────────────

def _clean(parts: List[str]) -> List[str]:
    return [p.strip() for p in parts if p and p.strip()]


def split_columns(line: str) -> List[str]:
    return _clean(_COLUMN_SPLIT.split(line))


def split_wide_spacing(line: str) -> List[str]:
    return _clean(_WIDE_SPLIT.split(line))


def group_words(line: str) -> List[str]:
    """
    Word grouping: date tokens and amount tokens stand alone, every other
    run of words is one segment.
    """
    words = line.split()
    segments: List[str] = []
    current: List[str] = []
    i = 0
    while i < len(words):
        token = None
        for span in (3, 1):
            candidate = " ".join(words[i:i + span])
            if len(words[i:i + span]) == span and is_date(candidate):
                token, width = candidate, span
                break
        if token is None and is_amount(words[i]):
            token, width = words[i], 1
        if token is None:
            current.append(words[i])
            i += 1
            continue
        if current:
            segments.append(" ".join(current))
            current = []
        segments.append(token)
        i += width
    if current:
        segments.append(" ".join(current))
    return segments


# (name, splitter, minimum segments to accept); the last rule always applies
SEGMENTATION_RULES: List[Tuple[str, Callable[[str], List[str]], int]] = [
    ("column_separator", split_columns, 4),
    ("wide_spacing", split_wide_spacing, 3),
    ("word_grouping", group_words, 0),
]


def segment_line(line: str) -> Tuple[str, List[str]]:
    for name, splitter, minimum in SEGMENTATION_RULES:
        parts = splitter(line)
        if len(parts) >= minimum:
            return name, parts
    return "", []


def _segment(state: _LineState) -> None:
    state.segmentation, state.segments = segment_line(state.line)


# ─────────────────────────────────────────────────────────────
# Step 2: Leading dates
# ─────────────────────────────────────────────────────────────

def _take_dates(state: _LineState) -> None:
    rest = list(state.segments)
    while rest and len(state.dates) < 2:
        match = LEADING_DATE_PATTERN.match(rest[0])
        if not match:
            break
        state.dates.append(" ".join(match.group(1).split()))
        remainder = rest[0][match.end():].strip()
        if remainder:
            rest[0] = remainder
        else:
            rest.pop(0)
    state.rest = rest


# ─────────────────────────────────────────────────────────────
# Step 3: Structured fields before the amount run
# ─────────────────────────────────────────────────────────────

def amount_boundary(segments: List[str]) -> int:
    """
    Index where the amount columns start: the first run of two consecutive
    amounts, else the trailing amounts, else the end of the line.
    """
    flags = [is_amount(s) for s in segments]
    for j in range(len(segments) - 1):
        if flags[j] and flags[j + 1]:
            return j
    j = len(segments)
    while j > 0 and flags[j - 1]:
        j -= 1
    return j


def _has_letters_and_digits(text: str) -> bool:
    return bool(re.search(r'[A-Z]', text, re.I)) and bool(re.search(r'\d', text))


def _mostly_numeric(token: str) -> bool:
    return sum(c.isdigit() for c in token) * 2 >= len(token)


def is_reference_segment(segment: str, position: int) -> bool:
    compact = segment.replace(",", "").strip()
    if re.fullmatch(r'\d{10,15}', compact):
        return True
    if re.fullmatch(r'\d{6,11}', compact) and position > 2:
        return True
    return (bool(re.fullmatch(r'[A-Z0-9]{8,20}', segment, re.I))
            and _has_letters_and_digits(segment)
            and segment.upper() not in STOP_WORDS)


def is_branch_segment(segment: str) -> bool:
    return bool(re.fullmatch(r'[A-Z0-9]{3,6}', segment, re.I)) and _mostly_numeric(segment)


def _claim_structured(state: _LineState) -> None:
    state.boundary = amount_boundary(state.rest)
    for j in range(state.boundary):
        segment = state.rest[j].strip()
        if not state.reference and is_reference_segment(segment, j):
            state.reference = segment
            state.claimed.add(j)
        elif (not state.branch and j >= state.boundary - 2
              and is_branch_segment(segment)):
            state.branch = segment
            state.claimed.add(j)


# ─────────────────────────────────────────────────────────────
# Step 4: Description
# ─────────────────────────────────────────────────────────────

def _build_description(state: _LineState) -> None:
    parts = [state.rest[j] for j in range(state.boundary) if j not in state.claimed]
    state.description = " ".join(" ".join(parts).split())


# ─────────────────────────────────────────────────────────────
# Step 5: Reference re-scan
# ─────────────────────────────────────────────────────────────

def _first_group(pattern: str) -> Callable[[str], Optional[str]]:
    regex = re.compile(pattern, re.I)

    def extract(text: str) -> Optional[str]:
        match = regex.search(text)
        return match.group(1) if match else None
    return extract


def _embedded_alphanumeric(text: str) -> Optional[str]:
    for match in re.finditer(r'(?<![A-Z0-9])([A-Z0-9]{8,20})(?![A-Z0-9])', text, re.I):
        candidate = match.group(1)
        if _has_letters_and_digits(candidate) and candidate.upper() not in STOP_WORDS:
            return candidate
    return None


def _embedded_long_number(text: str) -> Optional[str]:
    for match in re.finditer(r'(?<![\d,])(\d{10,15})(?![\d,])', text):
        before = text[max(0, match.start() - 10):match.start()]
        after = text[match.end():match.end() + 10]
        if re.search(r'[,\d]{3,}\s*$', before) or re.match(r'\s*,?\d', after):
            continue
        return match.group(1)
    return None


# Priority order; the first rule producing a value wins.
REFERENCE_RULES: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("rtgs_inb", _first_group(r'RTGS\s+INB[:\s]+(?=[A-Z]*\d)([A-Z0-9]{8,20})(?![A-Z0-9])')),
    ("rtgs_neft_utr", _first_group(
        r'\b(?:RTGS|NEFT|UTR)\b\s*(?:INB|NO\.?)?[:\s/-]*(?=[A-Z]*\d)([A-Z0-9]{8,20})(?![A-Z0-9])')),
    ("transfer_account", _first_group(r'TRANSFER\s+(?:FROM|TO)\s+(\d{10,})')),
    ("cheque", _first_group(r'\b(?:Chq|Cheque)\b\.?\s*(?:No\.?)?\s*[:-]?\s*(\d{6,})')),
    ("embedded_alphanumeric", _embedded_alphanumeric),
    ("embedded_long_number", _embedded_long_number),
    ("keyword_number", _first_group(
        r'\b(?:UTR|UPI|REF|REFERENCE|NO|NUMBER)\b[\s:./-]*(\d{8,11})(?!\d)')),
]


def find_reference(description: str) -> Optional[str]:
    for _name, rule in REFERENCE_RULES:
        value = rule(description)
        if value:
            return value.strip()
    return None


def _scan_reference(state: _LineState) -> None:
    if not state.reference and state.description:
        state.reference = find_reference(state.description) or ""


# ─────────────────────────────────────────────────────────────
# Step 6: Branch code re-scan
# ─────────────────────────────────────────────────────────────

def _branch_token(tokens: List[str], index: int, reference: str) -> Optional[str]:
    if index < 0 or index >= len(tokens):
        return None
    token = tokens[index]
    if token == reference or not is_branch_segment(token):
        return None
    if index > 0 and _MONTH_TOKEN.match(tokens[index - 1]):
        return None  # 'NOV 2025' is a period, not a branch
    return token


def _trailing_branch(description: str, reference: str) -> Optional[str]:
    tokens = description.split()
    return _branch_token(tokens, len(tokens) - 1, reference)


def _branch_before_reference(description: str, reference: str) -> Optional[str]:
    tokens = description.split()
    if reference and tokens and tokens[-1] == reference:
        return _branch_token(tokens, len(tokens) - 2, reference)
    return None


BRANCH_RULES: List[Tuple[str, Callable[[str, str], Optional[str]]]] = [
    ("trailing_token", _trailing_branch),
    ("before_trailing_reference", _branch_before_reference),
]


def find_branch(description: str, reference: str = "") -> Optional[str]:
    for _name, rule in BRANCH_RULES:
        value = rule(description, reference)
        if value:
            return value
    return None


def _scan_branch(state: _LineState) -> None:
    if not state.branch and state.description:
        state.branch = find_branch(state.description, state.reference) or ""


# ─────────────────────────────────────────────────────────────
# Step 7: Amounts
# ─────────────────────────────────────────────────────────────

def leaning(description: str) -> Tuple[bool, bool]:
    """(credit_leaning, debit_leaning) from narration keywords."""
    return bool(CREDIT_LEANING.search(description)), bool(DEBIT_LEANING.search(description))


def assign_amounts(amounts: List[float], description: str) -> Dict[str, str]:
    """
    Map the line's amounts onto debit / credit / balance.

    3+ amounts: the last three are (debit, credit, balance) ordered by the
    leaning, or by size when the leaning is unclear (larger one is credit).
    2 amounts: (amount, balance). 1 amount: the amount alone. A lone amount
    goes to debit when the narration leans debit, otherwise to credit.
    """
    is_credit, is_debit = leaning(description)
    fmt = "{:.2f}".format
    out = {"debit": "", "credit": "", "balance": ""}
    if len(amounts) >= 3:
        first, second, balance = amounts[-3:]
        if is_debit and not is_credit:
            debit, credit = first, second
        elif is_credit and not is_debit:
            credit, debit = first, second
        elif first > second:
            credit, debit = first, second
        else:
            debit, credit = first, second
        out.update(debit=fmt(debit), credit=fmt(credit), balance=fmt(balance))
    elif amounts:
        target = "debit" if is_debit else "credit"
        out[target] = fmt(amounts[0])
        if len(amounts) == 2:
            out["balance"] = fmt(amounts[1])
    return out


def _assign_amounts(state: _LineState) -> None:
    amounts = []
    for segment in state.rest[state.boundary:]:
        if not is_amount(segment):
            continue
        value = parse_currency(segment)
        if value is not None and value > 0:
            amounts.append(abs(value))
    assigned = assign_amounts(amounts, state.description)
    state.debit, state.credit, state.balance = assigned["debit"], assigned["credit"], assigned["balance"]


LINE_STEPS: List[Callable[[_LineState], None]] = [
    _segment,
    _take_dates,
    _claim_structured,
    _build_description,
    _scan_reference,
    _scan_branch,
    _assign_amounts,
]


class StatementClassifier:
    """
    Classifies reconstructed lines into statement rows.

    Holds configuration only; all per-call state lives in local variables and
    per-line _LineState objects, so one instance is safe to share.
    """

    def __init__(self, header_scan_lines: int = Config.HEADER_SCAN_ROWS,
                 header_min_matches: int = Config.HEADER_MIN_MATCHES):
        self.header_scan_lines = header_scan_lines
        self.header_min_matches = header_min_matches

    def find_header(self, lines: List[str]) -> int:
        """Index of the column header line, or -1."""
        for i, line in enumerate(lines[:self.header_scan_lines]):
            cells = split_wide_spacing(line)
            if count_label_matches(cells, HEADER_LABELS) >= self.header_min_matches:
                return i
        return -1

    def classify(self, lines: List[str]) -> List[Dict[str, str]]:
        header_index = self.find_header(lines)
        body = lines[header_index + 1:] if header_index >= 0 else lines

        rows = []
        dropped = 0
        for line in body:
            if not line.strip() or not DATE_PATTERN.search(line):
                continue
            row = self.classify_line(line)
            if row is None:
                dropped += 1
                continue
            rows.append(row)
        logging.info(f"Classified {len(rows)} transaction lines ({dropped} dropped, header at {header_index})")
        return rows

    def classify_line(self, line: str) -> Optional[Dict[str, str]]:
        state = _LineState(line=line)
        for step in LINE_STEPS:
            step(state)

        txn_date = state.dates[0] if state.dates else ""
        value_date = state.dates[1] if len(state.dates) > 1 else txn_date
        if not (txn_date or state.description or state.debit or state.credit or state.balance):
            logging.debug(f"Unclassifiable line dropped: {line!r}")
            return None

        return {
            STATEMENT_HEADERS["transaction_date"]: txn_date,
            STATEMENT_HEADERS["value_date"]: value_date,
            STATEMENT_HEADERS["description"]: state.description,
            STATEMENT_HEADERS["reference_number"]: state.reference,
            STATEMENT_HEADERS["branch_code"]: state.branch,
            STATEMENT_HEADERS["debit_amount"]: state.debit,
            STATEMENT_HEADERS["credit_amount"]: state.credit,
            STATEMENT_HEADERS["balance"]: state.balance,
        }
