"""Import orchestration: escalating mapping strategies per file, then batch
reconciliation.

For one file the strategies run cheapest first and stop at the first one
that yields at least one transaction:

1. ``cache``: a mapping previously learned for this header signature;
2. ``oracle_mapping``: the oracle's guess from header + sample rows;
3. ``rules``: the deterministic synonym/fuzzy resolver;
4. ``oracle_structure``: the oracle re-reads the raw rows, possibly choosing
   a different header row than the heuristic did.

A winning non-cache strategy teaches its mapping to the cache, so the next
import of the same layout goes straight through step 1.

A batch processes files one after another (reconciliation needs all of
them) and runs a single transfer-reconciliation pass at the end.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from .cache import JsonFileMappingCache, MappingCache
from .categorization import Categorizer, CategoryRuleStore, JsonFileCategoryRuleStore
from .columns import rule_based_mapping
from .grid import detect_header_row, read_grid, split_header
from .logging_setup import get_logger
from .models import (
    EXTRACTION_FAILED_MESSAGE,
    ExtractionError,
    FileMapping,
    ImportFailure,
    ImportPhase,
    ImportResult,
    Row,
    Transaction,
)
from .normalizers import apply_mapping, normalize_extracted_rows
from .oracle import SAMPLE_ROWS, SchemaOracle, default_oracle
from .transfers import reconcile_transfers

_logger = get_logger("statement_ingest.pipeline")


@dataclass(frozen=True, slots=True)
class FileHints:
    """Optional caller knowledge about a file.

    ``filename``/``content_type`` choose the reader; ``header_row`` pins the
    header index instead of detecting it.
    """

    filename: str | None = None
    content_type: str | None = None
    header_row: int | None = None


@dataclass(frozen=True, slots=True)
class ImportJob:
    data: bytes
    owner: str
    hints: FileHints | None = None


@dataclass(frozen=True, slots=True)
class _Attempt:
    strategy: str
    header: list[str]
    transactions: list[Transaction]
    mapping: FileMapping | None


def _require_owner(owner: str) -> str:
    if not isinstance(owner, str) or not owner.strip():
        raise ValueError("owner must be a non-empty string")
    return owner.strip()


class Transformer:
    """Turns file bytes into canonical transactions for one owner at a time.

    Stores are injected so tests and hosts can supply in-memory fakes; the
    defaults are the JSON-file stores under the cache root and
    :func:`~statement_ingest.oracle.default_oracle`.
    """

    def __init__(
        self,
        *,
        cache: MappingCache | None = None,
        oracle: SchemaOracle | None = None,
        rules: CategoryRuleStore | None = None,
    ) -> None:
        self.cache: MappingCache = cache if cache is not None else JsonFileMappingCache()
        self.oracle: SchemaOracle = oracle if oracle is not None else default_oracle()
        self.rules: CategoryRuleStore = rules if rules is not None else JsonFileCategoryRuleStore()

    # -- strategies -----------------------------------------------------------

    def _apply(
        self,
        strategy: str,
        rows: Sequence[Row],
        header: list[str],
        mapping: FileMapping | None,
        owner: str,
        categorizer: Categorizer,
    ) -> _Attempt:
        if mapping is None or not mapping.is_usable():
            _logger.info("transform:strategy name=%s owner=%s skipped=no_mapping", strategy, owner)
            return _Attempt(strategy, header, [], mapping)
        txs = apply_mapping(rows, header, mapping, owner, categorizer=categorizer)
        _logger.info(
            "transform:strategy name=%s owner=%s transactions=%d", strategy, owner, len(txs)
        )
        return _Attempt(strategy, header, txs, mapping)

    def _strategies(
        self,
        grid: list[Row],
        header_index: int,
        owner: str,
        categorizer: Categorizer,
    ) -> Iterable[Callable[[], _Attempt]]:
        header, data_rows = split_header(grid, header_index)

        yield lambda: self._apply(
            "cache", data_rows, header, self.cache.get(header), owner, categorizer
        )
        yield lambda: self._apply(
            "oracle_mapping",
            data_rows,
            header,
            self.oracle.infer_mapping(header, data_rows[:SAMPLE_ROWS]),
            owner,
            categorizer,
        )
        yield lambda: self._apply(
            "rules", data_rows, header, rule_based_mapping(header), owner, categorizer
        )
        yield lambda: self._recover_structure(grid, owner, categorizer)

    def _recover_structure(self, grid: list[Row], owner: str, categorizer: Categorizer) -> _Attempt:
        structure = self.oracle.detect_structure(grid[:SAMPLE_ROWS])
        if structure is None or not structure.is_usable() or structure.header_index >= len(grid):
            _logger.info(
                "transform:strategy name=oracle_structure owner=%s skipped=no_structure", owner
            )
            return _Attempt("oracle_structure", [], [], None)
        header, data_rows = split_header(grid, structure.header_index)
        return self._apply(
            "oracle_structure", data_rows, header, structure.mapping, owner, categorizer
        )

    def _remember(self, attempt: _Attempt, owner: str) -> None:
        # A failed write costs only the shortcut on the next import.
        try:
            self.cache.put(attempt.header, attempt.mapping)
        except OSError as e:
            _logger.warning(
                "mapping_cache:write_failed owner=%s strategy=%s error=%s",
                owner,
                attempt.strategy,
                e.__class__.__name__,
            )

    # -- public ---------------------------------------------------------------

    def transform(
        self, data: bytes, owner: str, *, hints: FileHints | None = None
    ) -> list[Transaction]:
        """Return the transactions in ``data`` or raise ``ExtractionError``."""

        owner = _require_owner(owner)
        hints = hints or FileHints()
        grid = read_grid(data, filename=hints.filename, content_type=hints.content_type)
        if hints.header_row is not None and 0 <= hints.header_row < len(grid):
            header_index = hints.header_row
        else:
            header_index = detect_header_row(grid)
        _logger.info(
            "transform:start owner=%s filename=%s rows=%d header_index=%d",
            owner,
            hints.filename,
            len(grid),
            header_index,
        )

        categorizer = Categorizer.from_store(self.rules)
        for run in self._strategies(grid, header_index, owner, categorizer):
            attempt = run()
            if not attempt.transactions:
                continue
            if attempt.strategy != "cache" and attempt.mapping is not None:
                self._remember(attempt, owner)
            _logger.info(
                "transform:done owner=%s strategy=%s transactions=%d",
                owner,
                attempt.strategy,
                len(attempt.transactions),
            )
            return attempt.transactions

        _logger.warning("transform:exhausted owner=%s filename=%s", owner, hints.filename)
        raise ExtractionError(EXTRACTION_FAILED_MESSAGE)

    def transform_extracted_rows(self, items: Iterable[Any], owner: str) -> list[Transaction]:
        """Normalize rows already extracted by a document service (PDFs)."""

        owner = _require_owner(owner)
        txs = normalize_extracted_rows(items, owner, categorizer=Categorizer.from_store(self.rules))
        if not txs:
            raise ExtractionError(
                "Could not extract transactions. Ensure the document contains a readable "
                "statement, not just images."
            )
        return txs

    def import_batch(self, jobs: Iterable[ImportJob]) -> ImportResult:
        """Import every job in order, then reconcile transfers once.

        A failing file is recorded in ``failures`` and does not stop the
        batch; only the files that succeeded take part in reconciliation.
        """

        result = ImportResult()
        _logger.info("import:phase phase=%s", result.phase)
        for job in jobs:
            filename = job.hints.filename if job.hints else None
            try:
                result.transactions.extend(self.transform(job.data, job.owner, hints=job.hints))
            except ValueError as e:
                _logger.warning(
                    "import:file_failed owner=%s filename=%s error=%s", job.owner, filename, e
                )
                result.failures.append(
                    ImportFailure(owner=job.owner, filename=filename, error=str(e))
                )

        result.phase = ImportPhase.RECONCILING
        _logger.info(
            "import:phase phase=%s transactions=%d", result.phase, len(result.transactions)
        )
        _, result.transfer_count = reconcile_transfers(result.transactions)

        result.phase = ImportPhase.DONE
        _logger.info(
            "import:phase phase=%s transactions=%d transfers=%d failures=%d",
            result.phase,
            len(result.transactions),
            result.transfer_count,
            len(result.failures),
        )
        return result


__all__ = ["FileHints", "ImportJob", "Transformer"]
