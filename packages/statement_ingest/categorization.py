"""Category assignment and direction correction for normalized rows.

Precedence, strongest first:

1. a learned user rule (keyword -> category) found in the description, which
   overrides even a category supplied by the source file;
2. only when the source category is empty or generic: the ordered keyword
   dictionary, then the ordered regex patterns;
3. normalization of the resulting labels;
4. direction correction from income/transfer vocabulary, unless an explicit
   type column already pinned the direction.

Learned rules live behind the :class:`CategoryRuleStore` protocol so tests and
hosts can inject their own store. Rules are only ever written by
user-initiated corrections (the ``learn-rule`` CLI command or a host UI).
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .cache import get_cache_root, write_json_atomic
from .categories import (
    CATEGORY_KEYWORDS,
    GENERIC_CATEGORIES,
    INCOME_CATEGORIES,
    INCOME_KEYWORDS,
    SMART_PATTERNS,
    TRANSFER_CATEGORIES,
)
from .logging_setup import get_logger
from .models import DEFAULT_SUBCATEGORY, UNCLASSIFIED, TransactionType

_logger = get_logger("statement_ingest.categorization")

_INCOME_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in INCOME_KEYWORDS) + r")\b", re.IGNORECASE
)


# ---------------------------------------------------------------------------
# Learned rule stores
# ---------------------------------------------------------------------------


class CategoryRuleStore(Protocol):
    def rules(self) -> Mapping[str, str]: ...

    def learn(self, keyword: str, category: str) -> None: ...


def _clean_rule(keyword: str, category: str) -> tuple[str, str]:
    kw = " ".join(keyword.split()).lower()
    cat = " ".join(category.split())
    if not kw:
        raise ValueError("rule keyword must be non-empty")
    if not cat:
        raise ValueError("rule category must be non-empty")
    return kw, cat


class InMemoryCategoryRuleStore:
    def __init__(self, rules: Mapping[str, str] | None = None) -> None:
        self._rules: dict[str, str] = {}
        for kw, cat in (rules or {}).items():
            self.learn(kw, cat)

    def rules(self) -> Mapping[str, str]:
        return dict(self._rules)

    def learn(self, keyword: str, category: str) -> None:
        kw, cat = _clean_rule(keyword, category)
        self._rules[kw] = cat


class _RulesFile(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    schema_version: int
    rules: dict[str, str]

    @field_validator("rules")
    @classmethod
    def _lowercase_keywords(cls, v: dict[str, str]) -> dict[str, str]:
        return {k.strip().lower(): c.strip() for k, c in v.items() if k.strip() and c.strip()}


class JsonFileCategoryRuleStore:
    """Rules persisted as ``<cache_root>/category_rules.json``."""

    FILENAME = "category_rules.json"
    SCHEMA_VERSION = 1

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path if self._path is not None else get_cache_root() / self.FILENAME

    def rules(self) -> Mapping[str, str]:
        path = self.path
        if not path.exists():
            return {}
        try:
            parsed = _RulesFile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            _logger.debug("category_rules:read_failed path=%s", os.fspath(path), exc_info=True)
            return {}
        if parsed.schema_version != self.SCHEMA_VERSION:
            return {}
        return parsed.rules

    def learn(self, keyword: str, category: str) -> None:
        kw, cat = _clean_rule(keyword, category)
        current = dict(self.rules())
        current[kw] = cat
        write_json_atomic(self.path, {"schema_version": self.SCHEMA_VERSION, "rules": current})
        _logger.info("category_rules:learned keyword=%r category=%r", kw, cat)


def learned_category(description: str, rules: Mapping[str, str]) -> str | None:
    """Return the category of the longest rule keyword found in ``description``.

    Ties on length resolve to the alphabetically first keyword so the result
    does not depend on store iteration order.
    """

    if not description or not rules:
        return None
    text = description.lower()
    hits = [kw for kw in rules if kw and kw in text]
    if not hits:
        return None
    best = min(hits, key=lambda kw: (-len(kw), kw))
    return rules[best]


# ---------------------------------------------------------------------------
# Categorizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryDecision:
    category: str
    sub_category: str
    type: TransactionType


def _title(label: str) -> str:
    # Upper-case the first letter of each word without lowering the rest, so
    # acronyms such as "EMI" survive.
    return " ".join(w[:1].upper() + w[1:] for w in label.split())


# Keywords this short ("tfl", "ola", "eat") only count as whole words; as bare
# substrings they hit "netflix", "chocolate" and "great".
_SHORT_KEYWORD_LEN = 3
_SHORT_KEYWORD_RES: dict[str, re.Pattern[str]] = {
    kw: re.compile(rf"\b{re.escape(kw)}\b")
    for kw, _cat in CATEGORY_KEYWORDS
    if len(kw) <= _SHORT_KEYWORD_LEN
}


def _dictionary_category(text: str) -> str | None:
    for keyword, category in CATEGORY_KEYWORDS:
        short = _SHORT_KEYWORD_RES.get(keyword)
        if (short.search(text) if short is not None else keyword in text):
            return category
    return None


def _pattern_category(*texts: str) -> str | None:
    for pattern, category in SMART_PATTERNS:
        if any(pattern.search(t) for t in texts if t):
            return category
    return None


class Categorizer:
    """Apply learned rules, vocabulary and direction correction.

    The rule snapshot is taken once at construction; one categorizer is meant
    to serve one file import.
    """

    def __init__(self, rules: Mapping[str, str] | None = None) -> None:
        self._rules: dict[str, str] = {k.lower(): v for k, v in (rules or {}).items()}

    @classmethod
    def from_store(cls, store: CategoryRuleStore | None) -> Categorizer:
        return cls(store.rules() if store is not None else None)

    def learned(self, description: str) -> str | None:
        return learned_category(description, self._rules)

    def categorize(
        self,
        *,
        category: str,
        sub_category: str,
        notes: str,
        inferred_type: TransactionType,
        type_pinned: bool = False,
    ) -> CategoryDecision:
        category = (category or "").strip()
        sub_category = (sub_category or "").strip()
        notes = (notes or "").strip()
        combined = f"{category} {sub_category} {notes}".lower()

        learned = self.learned(notes)
        if learned:
            category = learned
        elif category in GENERIC_CATEGORIES:
            hit = _dictionary_category(combined)
            if hit is not None:
                category = hit
                if not sub_category and notes:
                    sub_category = notes
            else:
                hit = _pattern_category(notes, combined)
                if hit is not None:
                    category = hit

        category = _title(category)
        if not category or category.lower() == "nan":
            category = UNCLASSIFIED
        if not sub_category:
            sub_category = DEFAULT_SUBCATEGORY

        tx_type = inferred_type
        if not type_pinned:
            if tx_type == "Expense" and (
                _INCOME_RE.search(combined) or category in INCOME_CATEGORIES
            ):
                tx_type = "Income"
            if category in TRANSFER_CATEGORIES:
                tx_type = "Transfer"

        return CategoryDecision(category=category, sub_category=sub_category, type=tx_type)


__all__ = [
    "CategoryDecision",
    "CategoryRuleStore",
    "Categorizer",
    "InMemoryCategoryRuleStore",
    "JsonFileCategoryRuleStore",
    "learned_category",
]
