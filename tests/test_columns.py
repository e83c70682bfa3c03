from __future__ import annotations

import pytest

from statement_ingest.columns import (
    FIELD_SYNONYMS,
    find_best_column,
    rule_based_mapping,
    similarity,
)


def test_exact_match_wins_immediately() -> None:
    assert find_best_column(["Posted On Date", "date"], FIELD_SYNONYMS["date"]) == "date"


def test_substring_match_scores_over_weak_similarity() -> None:
    cols = ["Ref No", "Transaction Details (Narrative)", "Amt"]
    assert find_best_column(cols, FIELD_SYNONYMS["description"]) == (
        "Transaction Details (Narrative)"
    )


def test_typo_resolves_through_edit_distance() -> None:
    assert find_best_column(["Dat", "Desciption", "Ammount"], ["Description"]) == "Desciption"
    assert similarity("ammount", "amount") == pytest.approx(6 / 7)


def test_balance_columns_are_never_mapped() -> None:
    cols = ["Date", "Running Balance", "Available Balance"]
    assert find_best_column(cols, FIELD_SYNONYMS["amount"]) is None


def test_no_candidate_over_threshold_returns_none() -> None:
    assert find_best_column(["Foo", "Bar"], FIELD_SYNONYMS["date"]) is None


def test_simple_three_column_mapping() -> None:
    mapping = rule_based_mapping(["Date", "Description", "Amount"])
    assert mapping.date_column == "Date"
    assert mapping.amount_column == "Amount"
    assert mapping.description_column == "Description"
    # A single "Amount" header must not pose as both sides of a split.
    assert mapping.is_credit_debit_separate is False
    assert mapping.expense_transfer_column is None
    assert mapping.income_transfer_column is None


def test_credit_debit_split_is_detected() -> None:
    mapping = rule_based_mapping(["Value Date", "Particulars", "Debit", "Credit", "Balance"])
    assert mapping.is_credit_debit_separate is True
    assert mapping.credit_column == "Credit"
    assert mapping.debit_column == "Debit"
    assert mapping.description_column == "Particulars"


def test_transfer_ledger_columns_are_detected() -> None:
    header = [
        "Date",
        "Amount",
        "Category",
        "Sub-Category",
        "Expense(Transfer Out)",
        "Income(Transfer In)",
        "Remark",
    ]
    mapping = rule_based_mapping(header)
    assert mapping.amount_column == "Amount"
    assert mapping.expense_transfer_column == "Expense(Transfer Out)"
    assert mapping.income_transfer_column == "Income(Transfer In)"
    assert mapping.category_column == "Category"
    assert mapping.subcategory_column == "Sub-Category"


def test_mapping_without_date_is_not_usable() -> None:
    mapping = rule_based_mapping(["Foo", "Bar", "Amount"])
    assert mapping.date_column is None
    assert not mapping.is_usable()
