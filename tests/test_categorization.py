from __future__ import annotations

import json
from pathlib import Path

import pytest

from statement_ingest.categorization import (
    Categorizer,
    InMemoryCategoryRuleStore,
    JsonFileCategoryRuleStore,
    learned_category,
)


def _categorize(categorizer: Categorizer, notes: str, **kw: object):
    params: dict[str, object] = {
        "category": "",
        "sub_category": "",
        "notes": notes,
        "inferred_type": "Expense",
    }
    params.update(kw)
    return categorizer.categorize(**params)  # type: ignore[arg-type]


def test_learned_rule_beats_dictionary() -> None:
    plain = _categorize(Categorizer(), "NETFLIX SUBSCRIPTION")
    assert plain.category == "Entertainment"

    taught = _categorize(Categorizer({"netflix": "Streaming"}), "NETFLIX SUBSCRIPTION")
    assert taught.category == "Streaming"


def test_learned_rule_overrides_source_category() -> None:
    decision = _categorize(
        Categorizer({"netflix": "Streaming"}), "netflix.com", category="Subscriptions"
    )
    assert decision.category == "Streaming"


def test_longest_learned_keyword_wins() -> None:
    rules = {"amazon": "Shopping", "amazon prime": "Entertainment"}
    assert learned_category("AMAZON PRIME VIDEO", rules) == "Entertainment"
    assert learned_category("AMAZON MARKETPLACE", rules) == "Shopping"
    assert learned_category("", rules) is None


def test_specific_source_category_is_kept() -> None:
    decision = _categorize(Categorizer(), "uber trip", category="travel reimbursable")
    assert decision.category == "Travel Reimbursable"


def test_dictionary_fills_generic_category_and_subcategory() -> None:
    decision = _categorize(Categorizer(), "Uber trip to airport", category="General")
    assert decision.category == "Transport"
    assert decision.sub_category == "Uber trip to airport"


def test_regex_patterns_apply_when_dictionary_misses() -> None:
    assert _categorize(Categorizer(), "ATM WDL 12345 MAIN ST").category == "Cash"
    assert _categorize(Categorizer(), "NEFT-HDFC0001-J DOE").category == "Transfer"


def test_unknown_description_is_unclassified() -> None:
    decision = _categorize(Categorizer(), "XQZ 998877")
    assert decision.category == "Unclassified"
    assert decision.sub_category == "General"


def test_income_vocabulary_turns_expense_into_income() -> None:
    decision = _categorize(Categorizer(), "Quarterly dividend payout")
    assert decision.category == "Income"
    assert decision.type == "Income"


def test_transfer_category_sets_transfer_type() -> None:
    decision = _categorize(Categorizer(), "Paid", category="Credit Card Payment")
    assert decision.type == "Transfer"


def test_pinned_type_is_never_corrected() -> None:
    decision = _categorize(
        Categorizer(), "Quarterly dividend payout", inferred_type="Expense", type_pinned=True
    )
    assert decision.type == "Expense"


def test_in_memory_store_normalizes_keywords() -> None:
    store = InMemoryCategoryRuleStore()
    store.learn("  NetFlix  ", "Streaming")
    assert store.rules() == {"netflix": "Streaming"}
    with pytest.raises(ValueError):
        store.learn("   ", "Streaming")


def test_json_store_persists_rules(cache_root: Path) -> None:
    JsonFileCategoryRuleStore().learn("Netflix", "Streaming")
    JsonFileCategoryRuleStore().learn("spotify", "Streaming")

    rules = JsonFileCategoryRuleStore().rules()
    assert rules == {"netflix": "Streaming", "spotify": "Streaming"}

    doc = json.loads((cache_root / "category_rules.json").read_text(encoding="utf-8"))
    assert doc["schema_version"] == 1

    decision = _categorize(Categorizer.from_store(JsonFileCategoryRuleStore()), "NETFLIX")
    assert decision.category == "Streaming"
