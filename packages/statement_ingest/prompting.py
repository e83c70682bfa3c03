"""Prompt construction and response schemas for the schema inference oracle.

Builds:

- system instructions shared by both oracle calls;
- user content for header-based mapping inference and for raw-structure
  recovery, each embedding the grid as a JSON block between
  ``BEGIN_*``/``END_*`` markers;
- the strict ``text.format`` JSON Schema objects for the OpenAI Responses API.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from .models import Cell

MAPPING_FIELDS: tuple[str, ...] = (
    "dateColumn",
    "dateFormat",
    "amountColumn",
    "categoryColumn",
    "subcategoryColumn",
    "descriptionColumn",
    "typeColumn",
    "projectColumn",
    "isCreditDebitSeparate",
    "creditColumn",
    "debitColumn",
    "expenseTransferColumn",
    "incomeTransferColumn",
)

HEADER_BEGIN = "BEGIN_HEADER_JSON"
HEADER_END = "END_HEADER_JSON"
ROWS_BEGIN = "BEGIN_ROWS_JSON"
ROWS_END = "END_ROWS_JSON"


def _cell_json(value: Cell) -> Any:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat(timespec="minutes")
    if isinstance(value, Decimal):
        return str(value)
    return value


def serialize_rows(rows: Sequence[Sequence[Cell]]) -> str:
    """Serialize grid rows to a compact JSON array of arrays."""

    return json.dumps(
        [[_cell_json(c) for c in row] for row in rows], ensure_ascii=False, default=str
    )


def build_system_instructions() -> str:
    return (
        "You map columns of bank, wallet and ledger exports (CSV or spreadsheet) onto a "
        "standard transaction schema. Use only column names that appear verbatim in the "
        "provided header row. Use null for fields that have no matching column. Output JSON "
        "only that conforms to the specified schema."
    )


_MAPPING_GUIDE = """\
Field meanings:
- dateColumn: the transaction date column.
- dateFormat: the date format if discernible (e.g. "YYYYMMDD", "DD/MM/YYYY"), else null.
- amountColumn: the transaction amount column when a single column holds amounts.
- categoryColumn / subcategoryColumn: category labels, if any.
- descriptionColumn: notes, narration, memo, payee or description.
- typeColumn: a column explicitly stating Income/Expense/Transfer (or Dr/Cr), if any.
- projectColumn: a project, tag or label column, if any.
- isCreditDebitSeparate: true when the file has separate Debit and Credit
  (Withdrawal and Deposit) amount columns; then map creditColumn and debitColumn.
- expenseTransferColumn / incomeTransferColumn: ledgers that hold an
  "Expense(Transfer Out)" and an "Income(Transfer In)" account column next to a
  single amount column.
Never map running balance columns."""


def build_mapping_user_content(header: Sequence[str], sample_rows: Sequence[Sequence[Cell]]) -> str:
    """User content for header-based mapping inference."""

    return "\n".join(
        [
            "Identify which column of this financial export corresponds to each standard field.",
            "",
            _MAPPING_GUIDE,
            "",
            HEADER_BEGIN,
            json.dumps(list(header), ensure_ascii=False),
            HEADER_END,
            "",
            f"Sample data ({len(sample_rows)} rows):",
            ROWS_BEGIN,
            serialize_rows(sample_rows),
            ROWS_END,
        ]
    )


def build_structure_user_content(raw_rows: Sequence[Sequence[Cell]]) -> str:
    """User content for header-row recovery from raw, preamble-laden rows."""

    return "\n".join(
        [
            "These are the first rows of a financial export. Metadata rows (bank name, "
            "address, account number, period) may precede the real table header.",
            "1. Find the 0-based index of the row that is the header of the transaction "
            "table (it usually names Date, Description/Narration, Amount or Debit/Credit, "
            "Balance). Use -1 when there is none.",
            "2. Map the columns of that header row onto the standard fields.",
            "",
            _MAPPING_GUIDE,
            "",
            ROWS_BEGIN,
            serialize_rows(raw_rows),
            ROWS_END,
        ]
    )


def _mapping_schema() -> dict[str, Any]:
    nullable_str: dict[str, Any] = {"type": ["string", "null"]}
    properties: dict[str, Any] = {name: dict(nullable_str) for name in MAPPING_FIELDS}
    properties["isCreditDebitSeparate"] = {"type": "boolean"}
    return {
        "type": "object",
        "properties": properties,
        "required": list(MAPPING_FIELDS),
        "additionalProperties": False,
    }


def build_mapping_response_format() -> dict[str, Any]:
    return {
        "type": "json_schema",
        "name": "file_mapping",
        "schema": _mapping_schema(),
        "strict": True,
    }


def build_structure_response_format() -> dict[str, Any]:
    return {
        "type": "json_schema",
        "name": "file_structure",
        "schema": {
            "type": "object",
            "properties": {
                "headerIndex": {"type": "integer"},
                "mapping": _mapping_schema(),
            },
            "required": ["headerIndex", "mapping"],
            "additionalProperties": False,
        },
        "strict": True,
    }


__all__ = [
    "MAPPING_FIELDS",
    "build_mapping_response_format",
    "build_mapping_user_content",
    "build_structure_response_format",
    "build_structure_user_content",
    "build_system_instructions",
    "serialize_rows",
]
