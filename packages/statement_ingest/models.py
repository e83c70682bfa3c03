"""Data models shared across the import pipeline.

Two families live here:

- :class:`Transaction`, the canonical record emitted by the row normalizer and
  handed to persistence and analytics. It is a plain ``dataclass`` because
  the categorization layer and the transfer reconciler rewrite a few fields in
  place after construction.
- Pydantic DTOs for everything that crosses a JSON boundary: the column
  mapping (:class:`FileMapping`), which is both persisted in the mapping cache
  and produced by the schema inference oracle, and the oracle's structural
  answer (:class:`HeaderStructure`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator

TransactionType: TypeAlias = Literal["Income", "Expense", "Transfer"]

# A single grid cell as produced by the grid extractor: text from delimited
# files, typed values (numbers, dates) from spreadsheets, ``None`` for blanks.
Cell: TypeAlias = str | int | float | Decimal | date | datetime | time | None
Row: TypeAlias = list[Cell]

UNCLASSIFIED = "Unclassified"
DEFAULT_SUBCATEGORY = "General"
DEFAULT_PROJECT = "None"


class ExtractionError(ValueError):
    """A whole file produced no transactions under any mapping strategy."""


EXTRACTION_FAILED_MESSAGE = (
    "Could not extract valid transactions. Check that the file has a recognizable "
    "date and amount column, or whether it is password protected."
)


@dataclass(slots=True)
class Transaction:
    """A canonical transaction.

    ``amount`` is always a positive magnitude; the direction of money lives in
    ``type``. ``id`` is derived deterministically from the owner, date, amount,
    a description prefix and the source row index, so re-importing an
    unchanged file yields identical ids.
    """

    id: str
    owner: str
    type: TransactionType
    date: str
    category: str
    amount: Decimal
    sub_category: str = DEFAULT_SUBCATEGORY
    notes: str = ""
    time: str | None = None
    project: str | None = DEFAULT_PROJECT

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase record consumed by persistence and analytics."""

        return {
            "id": self.id,
            "owner": self.owner,
            "type": self.type,
            "date": self.date,
            "time": self.time,
            "category": self.category,
            "subCategory": self.sub_category,
            "notes": self.notes,
            "amount": float(self.amount),
            "project": self.project,
        }


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str):
        s = v.strip()
        if not s or s.lower() in {"null", "none"}:
            return None
        return s
    return v


class FileMapping(BaseModel):
    """Correspondence from semantic fields to header names for one schema.

    Serialized with camelCase keys (``dateColumn``, ``isCreditDebitSeparate``
    and so on), which is also the shape the oracle prompt asks for. Unknown
    keys are ignored so slightly chatty oracle answers still validate.
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", str_strip_whitespace=True
    )

    date_column: str | None = Field(default=None, alias="dateColumn")
    date_format: str | None = Field(default=None, alias="dateFormat")
    amount_column: str | None = Field(default=None, alias="amountColumn")
    category_column: str | None = Field(default=None, alias="categoryColumn")
    subcategory_column: str | None = Field(default=None, alias="subcategoryColumn")
    description_column: str | None = Field(default=None, alias="descriptionColumn")
    type_column: str | None = Field(default=None, alias="typeColumn")
    project_column: str | None = Field(default=None, alias="projectColumn")
    is_credit_debit_separate: bool = Field(default=False, alias="isCreditDebitSeparate")
    credit_column: str | None = Field(default=None, alias="creditColumn")
    debit_column: str | None = Field(default=None, alias="debitColumn")
    expense_transfer_column: str | None = Field(default=None, alias="expenseTransferColumn")
    income_transfer_column: str | None = Field(default=None, alias="incomeTransferColumn")

    @field_validator(
        "date_column",
        "date_format",
        "amount_column",
        "category_column",
        "subcategory_column",
        "description_column",
        "type_column",
        "project_column",
        "credit_column",
        "debit_column",
        "expense_transfer_column",
        "income_transfer_column",
        mode="before",
    )
    @classmethod
    def _normalize_column(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("is_credit_debit_separate", mode="before")
    @classmethod
    def _coerce_flag(cls, v: Any) -> Any:
        if v is None:
            return False
        if isinstance(v, str):
            return v.strip().lower() in {"true", "yes", "1"}
        return v

    def is_usable(self) -> bool:
        """A mapping without a date column can never produce a transaction."""

        return bool(self.date_column)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class HeaderStructure(BaseModel):
    """Structural oracle answer: where the header row is and how to map it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    header_index: int = Field(alias="headerIndex")
    mapping: FileMapping | None = None

    def is_usable(self) -> bool:
        return self.header_index >= 0 and self.mapping is not None and self.mapping.is_usable()


class ImportPhase(StrEnum):
    NORMALIZING = "normalizing"
    RECONCILING = "reconciling"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class ImportFailure:
    owner: str
    filename: str | None
    error: str


@dataclass(slots=True)
class ImportResult:
    """Outcome of a multi-file import session."""

    transactions: list[Transaction] = field(default_factory=list)
    transfer_count: int = 0
    failures: list[ImportFailure] = field(default_factory=list)
    phase: ImportPhase = ImportPhase.NORMALIZING


__all__ = [
    "Cell",
    "DEFAULT_PROJECT",
    "DEFAULT_SUBCATEGORY",
    "EXTRACTION_FAILED_MESSAGE",
    "ExtractionError",
    "FileMapping",
    "HeaderStructure",
    "ImportFailure",
    "ImportPhase",
    "ImportResult",
    "Row",
    "Transaction",
    "TransactionType",
    "UNCLASSIFIED",
]
