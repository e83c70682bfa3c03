"""Row normalization: raw grid rows plus a column mapping to transactions.

Handles the three amount/direction schema shapes seen in exports:

- dual transfer columns (an "expense out" and an "income in" account column
  sharing one amount column, as in AndroMoney-style ledgers);
- separate credit and debit columns;
- a single signed amount column, optionally carrying ``Dr``/``Cr`` markers.

Direction defaults for a bare single amount column follow the ledger
convention of recording outflows as positive numbers: positive means
Expense, negative means Income, unless the column header itself names the
income side.

Per-row problems (unparseable dates, zero amounts, malformed cells) skip the
row and never fail the file.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .categorization import Categorizer
from .logging_setup import get_logger
from .models import (
    DEFAULT_PROJECT,
    DEFAULT_SUBCATEGORY,
    UNCLASSIFIED,
    Cell,
    FileMapping,
    Row,
    Transaction,
    TransactionType,
)

MIN_YEAR = 1990
MAX_YEAR = 2100
DEFAULT_TIME = "00:00"

_logger = get_logger("statement_ingest.normalizers")

# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def is_na(value: Cell) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    s = str(value).strip()
    return s == "" or s.lower() == "nan"


def cell_text(value: Cell) -> str:
    """Return the trimmed text of a cell; blanks and ``nan`` become ``""``."""

    if is_na(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedDate:
    date: str
    time: str
    year: int


_MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_COMPACT_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_MONTH_NAME_RE = re.compile(r"^(\d{1,2})[-/ ]([A-Za-z]{3,9})\.?[-/ ,]+(\d{2,4})\b")
_ISO_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})\b")
_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2,4})\b")
_US_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2,4})\b")
_TIME_RE = re.compile(r"[ T](\d{1,2}):(\d{2})")


def _full_year(text: str) -> int:
    year = int(text)
    return 2000 + year if len(text) == 2 else year


def _build(year: int, month: int, day: int, time_str: str) -> ParsedDate | None:
    try:
        d = date(year, month, day)
    except ValueError:
        return None
    return ParsedDate(date=d.isoformat(), time=time_str, year=year)


def _time_of(text: str) -> str:
    m = _TIME_RE.search(text)
    if not m:
        return DEFAULT_TIME
    hh, mm = int(m.group(1)), int(m.group(2))
    if hh > 23 or mm > 59:
        return DEFAULT_TIME
    return f"{hh:02d}:{mm:02d}"


def parse_date(value: Cell) -> ParsedDate | None:
    """Parse a date cell; ``None`` when no supported format applies.

    Formats, in priority order: native date cells, ``YYYYMMDD``,
    ``DD-MMM-YY(YY)``, ISO ``YYYY-MM-DD``, day-first ``DD-MM-YYYY`` /
    ``DD-MM-YY``, and finally US ``MM/DD/YYYY`` for values whose day-first
    reading is impossible (month > 12).
    """

    if is_na(value):
        return None
    if isinstance(value, datetime):
        return ParsedDate(value.date().isoformat(), value.strftime("%H:%M"), value.year)
    if isinstance(value, date):
        return ParsedDate(value.isoformat(), DEFAULT_TIME, value.year)

    s = cell_text(value)
    time_str = _time_of(s)

    m = _COMPACT_RE.match(s)
    if m:
        return _build(int(m.group(1)), int(m.group(2)), int(m.group(3)), time_str)

    m = _MONTH_NAME_RE.match(s)
    if m:
        month = _MONTHS.get(m.group(2)[:3].lower())
        if month is not None:
            return _build(_full_year(m.group(3)), month, int(m.group(1)), time_str)

    m = _ISO_RE.match(s)
    if m:
        return _build(int(m.group(1)), int(m.group(2)), int(m.group(3)), time_str)

    m = _DAY_FIRST_RE.match(s)
    if m and int(m.group(2)) <= 12:
        return _build(_full_year(m.group(3)), int(m.group(2)), int(m.group(1)), time_str)

    m = _US_RE.match(s)
    if m:
        return _build(_full_year(m.group(3)), int(m.group(1)), int(m.group(2)), time_str)

    return None


# ---------------------------------------------------------------------------
# Amounts and direction
# ---------------------------------------------------------------------------

_DECIMAL_COMMA_RE = re.compile(r"^[^.]*,\d{2}\D*$")
_ABBREVIATION_RE = re.compile(r"[A-Za-z]+\.")
_AMOUNT_NOISE_RE = re.compile(r"[^0-9.\-()]")
_DR_RE = re.compile(r"\b(dr|debit)\b", re.IGNORECASE)
_CR_RE = re.compile(r"\b(cr|credit)\b", re.IGNORECASE)

# Header vocabulary that flips the sign convention of a single amount column.
_INCOME_HEADER_WORDS: tuple[str, ...] = ("income", "credit", "deposit", "inflow", "received", "cr")

_TYPE_INCOME_WORDS: tuple[str, ...] = ("income", "credit", "deposit")
_TYPE_EXPENSE_WORDS: tuple[str, ...] = ("expense", "debit", "withdrawal", "payment")
_TYPE_SHORT_RE = re.compile(r"^\s*(cr|dr)\.?\s*$", re.IGNORECASE)

_CENTS = Decimal("0.01")
_ZERO = Decimal("0")


def clean_amount(value: Cell) -> Decimal:
    """Return the signed numeric value of an amount cell (``0`` when absent).

    Currency symbols, thousands separators and marker text are dropped.
    Abbreviations such as ``Rs.`` lose their dot along with the letters.
    Parentheses or a leading/trailing minus make the value negative. A lone
    comma followed by exactly two digits is read as a decimal comma.
    """

    if is_na(value) or isinstance(value, bool):
        return _ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else _ZERO

    s = str(value).strip()
    s = _ABBREVIATION_RE.sub("", s).strip()
    if _DECIMAL_COMMA_RE.match(s):
        s = s.replace(",", ".")
    s = _AMOUNT_NOISE_RE.sub("", s)
    if not s:
        return _ZERO

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
    s = s.replace("(", "").replace(")", "")
    if s.startswith("-") or s.endswith("-"):
        negative = True
    s = s.strip("-").replace("-", "")
    if s.count(".") > 1:
        head, _, tail = s.rpartition(".")
        s = head.replace(".", "") + "." + tail
    try:
        d = Decimal(s)
    except InvalidOperation:
        return _ZERO
    return -abs(d) if negative else abs(d)


def _fmt_amount(d: Decimal) -> str:
    return f"{d.quantize(_CENTS, rounding=ROUND_HALF_UP):.2f}"


def explicit_type(value: Cell) -> TransactionType | None:
    """Direction named by a type column, or ``None`` when it is ambiguous."""

    text = cell_text(value).lower()
    if not text:
        return None
    if any(k in text for k in _TYPE_INCOME_WORDS):
        return "Income"
    if any(k in text for k in _TYPE_EXPENSE_WORDS):
        return "Expense"
    if "transfer" in text:
        return "Transfer"
    m = _TYPE_SHORT_RE.match(text)
    if m:
        return "Income" if m.group(1) == "cr" else "Expense"
    return None


def single_column_direction(raw: Cell, value: Decimal, column_name: str) -> TransactionType:
    """Direction of a single signed amount column.

    Textual markers in the raw cell win (``Dr``/``Debit`` -> Expense,
    ``Cr``/``Credit`` or a leading ``+`` -> Income). Otherwise an income-ish
    column header maps positive to Income; any other header maps positive to
    Expense and negative to Income.
    """

    raw_text = "" if raw is None else str(raw).strip()
    if _DR_RE.search(raw_text):
        return "Expense"
    if _CR_RE.search(raw_text) or raw_text.startswith("+"):
        return "Income"
    col = column_name.lower()
    if any(k in col for k in _INCOME_HEADER_WORDS):
        return "Income" if value >= 0 else "Expense"
    return "Expense" if value >= 0 else "Income"


class _RowView:
    """Column-name access into one raw row."""

    __slots__ = ("_index", "_row")

    def __init__(self, row: Sequence[Cell], index: Mapping[str, int]) -> None:
        self._row = row
        self._index = index

    def get(self, column: str | None) -> Cell:
        if not column:
            return None
        i = self._index.get(column)
        if i is None:
            i = self._index.get(column.strip().lower())
        if i is None or i >= len(self._row):
            return None
        return self._row[i]


def _column_index(header: Sequence[str]) -> dict[str, int]:
    index: dict[str, int] = {}
    for i, name in enumerate(header):
        # First occurrence wins for duplicated header names.
        index.setdefault(name, i)
        index.setdefault(name.strip().lower(), i)
    return index


def resolve_amount_and_type(row: _RowView, mapping: FileMapping) -> tuple[Decimal, TransactionType]:
    """Return ``(magnitude, inferred_type)`` for one row; magnitude may be 0."""

    expense_col = mapping.expense_transfer_column
    income_col = mapping.income_transfer_column
    if expense_col and income_col and expense_col != income_col and mapping.amount_column:
        amount = abs(clean_amount(row.get(mapping.amount_column)))
        out_acc = cell_text(row.get(expense_col))
        in_acc = cell_text(row.get(income_col))
        if out_acc and in_acc:
            return amount, "Transfer"
        if in_acc:
            return amount, "Income"
        return amount, "Expense"

    if mapping.is_credit_debit_separate and mapping.credit_column and mapping.debit_column:
        cr = abs(clean_amount(row.get(mapping.credit_column)))
        dr = abs(clean_amount(row.get(mapping.debit_column)))
        if cr > 0:
            return cr, "Income"
        if dr > 0:
            return dr, "Expense"
        return _ZERO, "Expense"

    if mapping.amount_column:
        raw = row.get(mapping.amount_column)
        value = clean_amount(raw)
        return abs(value), single_column_direction(raw, value, mapping.amount_column)

    return _ZERO, "Expense"


# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def make_transaction_id(
    owner: str, iso_date: str, amount: Decimal, notes: str, row_index: int
) -> str:
    """``{owner}-{date}-{amount}-{notes[:10]}-{row}`` with non-alphanumerics removed.

    Deterministic for a given file and owner, so re-imports upsert instead of
    accumulating duplicates.
    """

    safe_owner = _NON_ALNUM_RE.sub("", owner)
    safe_desc = _NON_ALNUM_RE.sub("", notes[:10])
    return f"{safe_owner}-{iso_date}-{_fmt_amount(amount)}-{safe_desc}-{row_index}"


# ---------------------------------------------------------------------------
# Mapping application
# ---------------------------------------------------------------------------


def _normalize_row(
    row_index: int,
    row: _RowView,
    mapping: FileMapping,
    owner: str,
    categorizer: Categorizer,
) -> Transaction | None:
    parsed = parse_date(row.get(mapping.date_column))
    if parsed is None or not (MIN_YEAR <= parsed.year <= MAX_YEAR):
        return None

    amount, tx_type = resolve_amount_and_type(row, mapping)
    pinned = explicit_type(row.get(mapping.type_column)) if mapping.type_column else None
    if pinned is not None:
        tx_type = pinned

    amount = amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
    if amount == 0:
        return None

    notes = cell_text(row.get(mapping.description_column))
    decision = categorizer.categorize(
        category=cell_text(row.get(mapping.category_column)),
        sub_category=cell_text(row.get(mapping.subcategory_column)),
        notes=notes,
        inferred_type=tx_type,
        type_pinned=pinned is not None,
    )
    project = cell_text(row.get(mapping.project_column)) or DEFAULT_PROJECT

    return Transaction(
        id=make_transaction_id(owner, parsed.date, amount, notes, row_index),
        owner=owner,
        type=decision.type,
        date=parsed.date,
        time=parsed.time,
        category=decision.category,
        sub_category=decision.sub_category,
        notes=notes,
        amount=amount,
        project=project,
    )


def apply_mapping(
    data_rows: Sequence[Row],
    header: Sequence[str],
    mapping: FileMapping,
    owner: str,
    *,
    categorizer: Categorizer | None = None,
) -> list[Transaction]:
    """Normalize ``data_rows`` under ``mapping``; unusable rows are skipped."""

    categorizer = categorizer or Categorizer()
    index = _column_index(header)
    out: list[Transaction] = []
    skipped = 0
    for row_index, raw in enumerate(data_rows):
        try:
            tx = _normalize_row(row_index, _RowView(raw, index), mapping, owner, categorizer)
        except (ValueError, TypeError, ArithmeticError):
            _logger.debug("normalize:row_failed row=%d", row_index, exc_info=True)
            tx = None
        if tx is None:
            skipped += 1
            continue
        out.append(tx)
    _logger.debug(
        "normalize:done owner=%s kept=%d skipped=%d", owner, len(out), skipped
    )
    return out


# ---------------------------------------------------------------------------
# Rows already structured by an external document service (PDF statements)
# ---------------------------------------------------------------------------

_EXTRACTED_FIELDS: tuple[str, ...] = ("date", "description", "amount", "type", "category")
_MAX_CATEGORY_WORDS = 2


class ExtractedRow(BaseModel):
    """One row returned by a document-understanding service.

    Accepts either an object with ``date, description, amount, type,
    category`` keys or the compact positional array form in that order.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    date: str
    description: str = ""
    amount: str | None = None
    type: str | None = None
    category: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


def _coerce_extracted(item: Any) -> Mapping[str, Any] | None:
    if isinstance(item, Mapping):
        return item
    if isinstance(item, (list, tuple)):
        return dict(zip(_EXTRACTED_FIELDS, item, strict=False))
    return None


def normalize_extracted_rows(
    items: Iterable[Any],
    owner: str,
    *,
    categorizer: Categorizer | None = None,
) -> list[Transaction]:
    """Turn service-extracted rows into transactions.

    Dates go through :func:`parse_date`; categories are cut to two words and
    then overridden by any learned rule; the type is trusted only when it is
    Income or Expense (default Expense). Rows with unusable dates or zero
    amounts are dropped.
    """

    categorizer = categorizer or Categorizer()
    out: list[Transaction] = []
    for idx, item in enumerate(items):
        data = _coerce_extracted(item)
        if data is None:
            continue
        try:
            row = ExtractedRow.model_validate(data)
        except ValidationError:
            _logger.debug("normalize:extracted_row_invalid row=%d", idx, exc_info=True)
            continue

        parsed = parse_date(row.date)
        if parsed is None or not (MIN_YEAR <= parsed.year <= MAX_YEAR):
            continue
        amount = abs(clean_amount(row.amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)
        if amount == 0:
            continue

        notes = row.description.strip()
        category = (row.category or "").strip() or UNCLASSIFIED
        words = category.split()
        if len(words) > _MAX_CATEGORY_WORDS:
            category = " ".join(words[:_MAX_CATEGORY_WORDS])
        category = categorizer.learned(notes) or category
        tx_type: TransactionType = row.type if row.type in ("Income", "Expense") else "Expense"

        out.append(
            Transaction(
                id=make_transaction_id(owner, parsed.date, amount, notes, idx),
                owner=owner,
                type=tx_type,
                date=parsed.date,
                time=parsed.time,
                category=category,
                sub_category=DEFAULT_SUBCATEGORY,
                notes=notes,
                amount=amount,
                project=DEFAULT_PROJECT,
            )
        )
    return out


__all__ = [
    "ExtractedRow",
    "ParsedDate",
    "apply_mapping",
    "clean_amount",
    "explicit_type",
    "make_transaction_id",
    "normalize_extracted_rows",
    "parse_date",
    "resolve_amount_and_type",
    "single_column_direction",
]
