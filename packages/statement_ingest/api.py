"""Public API interfaces for the ``statement_ingest`` package.

This module is the stable import surface. Each function builds a
:class:`~statement_ingest.pipeline.Transformer` from the stores it is given,
falling back to the JSON-file mapping cache and category rules under the
cache root and to :func:`~statement_ingest.oracle.default_oracle`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .cache import MappingCache
from .categorization import CategoryRuleStore
from .models import ImportResult, Transaction
from .oracle import SchemaOracle
from .pipeline import FileHints, ImportJob, Transformer
from .transfers import reconcile_transfers as reconcile_transfers  # re-export


def _transformer(
    cache: MappingCache | None,
    oracle: SchemaOracle | None,
    rules: CategoryRuleStore | None,
) -> Transformer:
    return Transformer(cache=cache, oracle=oracle, rules=rules)


def transform(
    data: bytes,
    owner: str,
    *,
    hints: FileHints | None = None,
    cache: MappingCache | None = None,
    oracle: SchemaOracle | None = None,
    rules: CategoryRuleStore | None = None,
) -> list[Transaction]:
    """Convert one statement file into canonical transactions for ``owner``.

    Input
    -----
    data:
        Raw file bytes (CSV/TSV or XLSX). PDFs are rejected; normalize the
        output of a document extraction service with
        :func:`transform_extracted_rows` instead.
    owner:
        Non-empty label stamped on every transaction and used in ids.
    hints:
        Optional filename, content type and pinned header row.

    Output
    ------
    A non-empty list of :class:`~statement_ingest.models.Transaction`.

    Raises
    ------
    ExtractionError
        When no mapping strategy yields a transaction, or the file cannot be
        read as a grid.
    ValueError
        When ``owner`` is empty.
    """

    return _transformer(cache, oracle, rules).transform(data, owner, hints=hints)


def import_batch(
    jobs: Iterable[ImportJob],
    *,
    cache: MappingCache | None = None,
    oracle: SchemaOracle | None = None,
    rules: CategoryRuleStore | None = None,
) -> ImportResult:
    """Import several files in order and reconcile transfers across them."""

    return _transformer(cache, oracle, rules).import_batch(jobs)


def transform_extracted_rows(
    items: Iterable[Any],
    owner: str,
    *,
    rules: CategoryRuleStore | None = None,
) -> list[Transaction]:
    """Normalize rows produced by an external document (PDF) extractor.

    Each item is a mapping with ``date``, ``description``, ``amount``,
    ``type`` and ``category`` keys, or a positional list in that order.
    """

    from .oracle import NullSchemaOracle

    return _transformer(None, NullSchemaOracle(), rules).transform_extracted_rows(items, owner)


__all__ = [
    "FileHints",
    "ImportJob",
    "import_batch",
    "reconcile_transfers",
    "transform",
    "transform_extracted_rows",
]
