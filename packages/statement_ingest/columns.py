"""Deterministic synonym/fuzzy resolution of header names.

Each semantic field (date, amount, description, ...) has an ordered list of
synonyms seen in real exports. :func:`find_best_column` scores every header
against those synonyms and :func:`rule_based_mapping` assembles a complete
:class:`~statement_ingest.models.FileMapping` from the per-field winners.
This is the fallback used when neither the mapping cache nor the oracle
produced a working mapping.
"""

from __future__ import annotations

from collections.abc import Sequence

from rapidfuzz.distance import Levenshtein

from .models import FileMapping

FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "amount": (
        "Amount", "Cost", "Value", "Price", "Total", "Sum", "Paid", "Spent",
        "Expense", "Outflow", "Money Out", "Debit", "Withdrawal", "Charge",
        "Credit Amount", "Inflow", "Money In", "Income", "Deposit", "Received",
        "Transaction Amount", "Debits", "Credits", "Net Amount",
        "amount_inr", "amount_rs", "rs", "₹", "inr", "amt", "$", "£", "€",
        "Withdrawal Amt.", "Deposit Amt.", "Withdrawal Amt", "Deposit Amt",
    ),
    "income": (
        "Income", "Earning", "Inflow", "Credit", "Money In", "Deposit", "Received",
        "Income(Transfer In)", "Income (Transfer In)", "Transfer In", "Transfer-In",
        "Transferin", "Credit Amount", "cr_amount", "Deposit Amount", "Deposit Amt.",
        "Deposit Amt",
    ),
    "expense": (
        "Expense", "Spend", "Outflow", "Debit", "Cost", "Money Out", "Payment", "Withdrawal",
        "Expense(Transfer Out)", "Expense (Transfer Out)", "Transfer Out", "Transfer-Out",
        "Transferout", "Debit Amount", "dr_amount", "Withdrawal Amount", "Withdrawal Amt.",
        "Withdrawal Amt",
    ),
    "credit": (
        "Credit", "Cr", "Deposit", "Incoming", "Credit Amount", "Inflow", "Deposit Amt.",
        "Deposit Amt",
    ),
    "debit": (
        "Debit", "Dr", "Withdrawal", "Outgoing", "Debit Amount", "Outflow", "Withdrawal Amt.",
        "Withdrawal Amt",
    ),
    "type": (
        "Type", "Transaction Type", "Nature", "Kind", "Flow", "Dr/Cr", "Direction", "Category",
    ),
    "category": (
        "Category", "Main Category", "Group", "Classification", "Primary Category", "Class", "Tag",
    ),
    "subcategory": (
        "Subcategory", "Sub-Category", "Sub Category", "subCategory", "sub_category",
        "Secondary Category", "Subgroup", "Sub Group", "Sub-Group", "Envelope",
        "Budget Group", "Secondary", "Minor Category", "Detail Category",
    ),
    "description": (
        "Notes", "Note", "Memo", "Description", "Detail", "Details", "Item", "Narrative",
        "Reference", "Remarks", "Comment", "Comments", "Payee", "Merchant", "Vendor",
        "Transaction Details", "Purpose", "Reason", "What For", "Transaction Note",
        "particulars", "narration", "desc", "Party Name",
    ),
    "date": (
        "Date", "Transaction Date", "Posting Date", "Booked Date", "Posted Date",
        "Time", "Datetime", "Posted At", "Created At", "Timestamp", "Txn Date", "Value Date",
    ),
    "project": ("Project", "Tag", "Reference", "Label"),
}

# Running-balance columns look like amounts but must never be mapped.
IGNORE_COLUMNS: tuple[str, ...] = (
    "Balance",
    "Running Balance",
    "Avail Bal",
    "Available Balance",
    "Total Balance",
    "Closing Balance",
)

SUBSTRING_SCORE = 0.9
SIMILARITY_THRESHOLD = 0.7
_MIN_SUBSTRING_LEN = 3

_IGNORE_LOWER = tuple(c.lower() for c in IGNORE_COLUMNS)


def header_keywords() -> tuple[str, ...]:
    """Lower-cased synonyms that identify a plausible header row."""

    words = FIELD_SYNONYMS["date"] + FIELD_SYNONYMS["amount"] + FIELD_SYNONYMS["description"]
    return tuple(dict.fromkeys(w.lower() for w in words))


def similarity(a: str, b: str) -> float:
    """Return ``(max_len - edit_distance) / max_len`` for two strings."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - Levenshtein.distance(a, b)) / longest


def _is_ignored(col_lower: str) -> bool:
    return any(ignored in col_lower for ignored in _IGNORE_LOWER)


def find_best_column(columns: Sequence[str], candidates: Sequence[str]) -> str | None:
    """Return the header in ``columns`` that best matches any of ``candidates``.

    Scoring per (column, candidate) pair:

    - exact case-insensitive match: accepted immediately;
    - substring containment in either direction, both sides at least three
      characters: 0.9;
    - otherwise normalized edit-distance similarity, counted only above 0.7.

    The highest score wins; on ties the earlier column is kept.
    """

    best: str | None = None
    best_score = 0.0

    for col in columns:
        if not col:
            continue
        col_lower = str(col).strip().lower()
        if not col_lower or _is_ignored(col_lower):
            continue
        for cand in candidates:
            cand_lower = cand.strip().lower()
            if col_lower == cand_lower:
                return col
            if cand_lower in col_lower or col_lower in cand_lower:
                if min(len(col_lower), len(cand_lower)) >= _MIN_SUBSTRING_LEN:
                    if SUBSTRING_SCORE > best_score:
                        best_score = SUBSTRING_SCORE
                        best = col
            score = similarity(col_lower, cand_lower)
            if score > SIMILARITY_THRESHOLD and score > best_score:
                best_score = score
                best = col
    return best


def rule_based_mapping(header: Sequence[str]) -> FileMapping:
    """Resolve every semantic field independently against ``header``.

    Direction columns (credit/debit, income/expense) only count when they
    resolve to two distinct headers; a plain ``Amount`` header matches the
    ``"Debit Amount"`` and ``"Credit Amount"`` synonyms by containment and
    would otherwise masquerade as both sides of a split.
    """

    amount = find_best_column(header, FIELD_SYNONYMS["amount"])
    credit, debit = _distinct_pair(
        find_best_column(header, FIELD_SYNONYMS["credit"]),
        find_best_column(header, FIELD_SYNONYMS["debit"]),
    )
    expense, income = _distinct_pair(
        find_best_column(header, FIELD_SYNONYMS["expense"]),
        find_best_column(header, FIELD_SYNONYMS["income"]),
    )
    if amount in (expense, income):
        expense = income = None

    return FileMapping(
        date_column=find_best_column(header, FIELD_SYNONYMS["date"]),
        amount_column=amount,
        category_column=find_best_column(header, FIELD_SYNONYMS["category"]),
        subcategory_column=find_best_column(header, FIELD_SYNONYMS["subcategory"]),
        description_column=find_best_column(header, FIELD_SYNONYMS["description"]),
        type_column=find_best_column(header, FIELD_SYNONYMS["type"]),
        project_column=find_best_column(header, FIELD_SYNONYMS["project"]),
        is_credit_debit_separate=bool(credit and debit),
        credit_column=credit,
        debit_column=debit,
        expense_transfer_column=expense,
        income_transfer_column=income,
    )


def _distinct_pair(a: str | None, b: str | None) -> tuple[str | None, str | None]:
    if a is None or b is None or a == b:
        return None, None
    return a, b


__all__ = [
    "FIELD_SYNONYMS",
    "IGNORE_COLUMNS",
    "find_best_column",
    "header_keywords",
    "rule_based_mapping",
    "similarity",
]
