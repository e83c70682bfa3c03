from __future__ import annotations

from decimal import Decimal

from statement_ingest.models import Transaction
from statement_ingest.transfers import (
    descriptions_similar,
    find_transfer_pairs,
    reconcile_transfers,
)


def _tx(
    tx_id: str,
    owner: str,
    tx_type: str,
    amount: str,
    notes: str,
    *,
    day: str = "2024-03-01",
    category: str = "Unclassified",
) -> Transaction:
    return Transaction(
        id=tx_id,
        owner=owner,
        type=tx_type,  # type: ignore[arg-type]
        date=day,
        category=category,
        amount=Decimal(amount),
        notes=notes,
    )


def test_cross_owner_legs_become_one_transfer_pair() -> None:
    income = _tx("a1", "alice", "Income", "500", "Transfer to Bob")
    expense = _tx("b1", "bob", "Expense", "500", "Transfer from Alice")
    bystander = _tx("b2", "bob", "Expense", "500", "Groceries at market")

    txs, count = reconcile_transfers([income, expense, bystander])

    assert count == 1
    assert len(txs) == 3
    for leg in (income, expense):
        assert leg.type == "Transfer"
        assert leg.category == "Transfer"
        assert leg.sub_category == "Inter-Account"
    assert bystander.type == "Expense"
    assert bystander.category == "Unclassified"


def test_same_owner_legs_are_not_matched() -> None:
    txs = [
        _tx("a1", "alice", "Income", "500", "Transfer in"),
        _tx("a2", "alice", "Expense", "500", "Transfer out"),
    ]
    _, count = reconcile_transfers(txs)
    assert count == 0
    assert [t.type for t in txs] == ["Income", "Expense"]


def test_amount_tolerance_and_date_must_agree() -> None:
    close = [
        _tx("a1", "alice", "Income", "500.00", "UPI from bob"),
        _tx("b1", "bob", "Expense", "500.01", "UPI to alice"),
    ]
    assert reconcile_transfers(close)[1] == 1

    too_far = [
        _tx("a1", "alice", "Income", "500.00", "UPI from bob"),
        _tx("b1", "bob", "Expense", "500.02", "UPI to alice"),
    ]
    assert reconcile_transfers(too_far)[1] == 0

    other_day = [
        _tx("a1", "alice", "Income", "500", "UPI from bob"),
        _tx("b1", "bob", "Expense", "500", "UPI to alice", day="2024-03-02"),
    ]
    assert reconcile_transfers(other_day)[1] == 0


def test_shared_word_counts_as_similar() -> None:
    assert descriptions_similar("Rent share March", "rent")
    assert not descriptions_similar("Rent share", "Coffee")
    # Tokens of two characters or fewer are ignored.
    assert not descriptions_similar("to ab", "to ab")


def test_matched_expense_is_not_reused() -> None:
    first = _tx("a1", "alice", "Income", "100", "Transfer from bob")
    second = _tx("c1", "carol", "Income", "100", "Transfer from bob")
    only_expense = _tx("b1", "bob", "Expense", "100", "Transfer out")

    matches = find_transfer_pairs([first, second, only_expense])

    assert len(matches) == 1
    assert matches[0].income is first
    assert matches[0].expense is only_expense


def test_category_stands_in_for_missing_notes() -> None:
    txs = [
        _tx("a1", "alice", "Income", "75", "", category="Bill Split"),
        _tx("b1", "bob", "Expense", "75", "", category="Bill Split"),
    ]
    assert reconcile_transfers(txs)[1] == 1


def test_empty_input() -> None:
    assert reconcile_transfers([]) == ([], 0)
