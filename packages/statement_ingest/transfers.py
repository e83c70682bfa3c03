"""Cross-file transfer reconciliation.

When several accounts (or several family members' files) are imported
together, money moved between them shows up twice: as Income in one file and
as Expense in another. Counting both legs inflates income and spending alike,
so matched legs are rewritten as one Transfer pair.

Matching is greedy and runs in input order within each date: every Income
leg takes the first still-unmatched Expense leg that has the same amount
(within 0.01), a different owner and a similar description. A matched
Expense is never reused.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import NamedTuple

from .categories import TRANSFER_KEYWORDS
from .logging_setup import get_logger
from .models import Transaction

AMOUNT_TOLERANCE = Decimal("0.01")
TRANSFER_CATEGORY = "Transfer"
TRANSFER_SUBCATEGORY = "Inter-Account"

_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9 ]")
_MIN_TOKEN_LEN = 3

_logger = get_logger("statement_ingest.transfers")


class TransferMatch(NamedTuple):
    """An Income leg and the Expense leg it was paired with."""

    income: Transaction
    expense: Transaction


def has_transfer_keyword(text: str) -> bool:
    lower = text.lower()
    return any(k in lower for k in TRANSFER_KEYWORDS)


def _tokens(text: str) -> set[str]:
    cleaned = _TOKEN_SPLIT_RE.sub(" ", text.lower())
    return {t for t in cleaned.split(" ") if len(t) >= _MIN_TOKEN_LEN}


def descriptions_similar(a: str, b: str) -> bool:
    """Both mention banking-transfer vocabulary, or they share a real word."""

    if has_transfer_keyword(a) and has_transfer_keyword(b):
        return True
    return bool(_tokens(a) & _tokens(b))


def _describe(tx: Transaction) -> str:
    return tx.notes or tx.category


def _is_pair(income: Transaction, expense: Transaction) -> bool:
    if abs(income.amount - expense.amount) > AMOUNT_TOLERANCE:
        return False
    if income.owner == expense.owner:
        return False
    return descriptions_similar(_describe(income), _describe(expense))


def _group_by_date(transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    groups: dict[str, list[Transaction]] = {}
    for tx in transactions:
        groups.setdefault(tx.date, []).append(tx)
    return groups


def find_transfer_pairs(transactions: Sequence[Transaction]) -> list[TransferMatch]:
    """Return greedy Income/Expense pairings without modifying anything."""

    matches: list[TransferMatch] = []
    for group in _group_by_date(transactions).values():
        if len(group) < 2:
            continue
        incomes = [t for t in group if t.type == "Income"]
        expenses = [t for t in group if t.type == "Expense"]
        if not incomes or not expenses:
            continue
        for inc in incomes:
            for pos, exp in enumerate(expenses):
                if _is_pair(inc, exp):
                    matches.append(TransferMatch(income=inc, expense=exp))
                    del expenses[pos]
                    break
    return matches


def _mark_transfer(tx: Transaction) -> None:
    tx.type = "Transfer"
    tx.category = TRANSFER_CATEGORY
    tx.sub_category = TRANSFER_SUBCATEGORY


def reconcile_transfers(transactions: list[Transaction]) -> tuple[list[Transaction], int]:
    """Collapse matched legs into Transfers in place; return ``(list, matches)``."""

    matches = find_transfer_pairs(transactions)
    for match in matches:
        _mark_transfer(match.income)
        _mark_transfer(match.expense)
    _logger.info(
        "reconcile:done transactions=%d transfer_pairs=%d", len(transactions), len(matches)
    )
    return transactions, len(matches)


__all__ = [
    "AMOUNT_TOLERANCE",
    "TransferMatch",
    "descriptions_similar",
    "find_transfer_pairs",
    "has_transfer_keyword",
    "reconcile_transfers",
]
