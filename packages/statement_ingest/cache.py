"""Mapping cache: learn a file schema once, reuse it on every later import.

Mappings are keyed by the *header signature* (trimmed, lower-cased, sorted
header names joined by ``|``), so column order never matters. Two stores are
provided behind the :class:`MappingCache` protocol:

- :class:`InMemoryMappingCache` for tests and embedding hosts;
- :class:`JsonFileMappingCache`, a single JSON document under the cache root.

Cache layout (relative to the cache root, default ``./.cache``)::

    <cache_root>/mappings.json

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
Reads that fail for any I/O or validation reason are treated as an empty
cache; the pipeline then simply falls through to its next strategy.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from .logging_setup import get_logger
from .models import FileMapping

# Bump only when the on-disk JSON shape changes.
SCHEMA_VERSION: int = 1
SIGNATURE_DELIMITER = "|"

_logger = get_logger("statement_ingest.cache")


def get_cache_root() -> Path:
    """Return the directory holding learned mappings and category rules.

    Default: ``./.cache`` under the current working directory.
    Override: ``STATEMENT_INGEST_CACHE_DIR`` (absolute or relative).
    """

    root = os.getenv("STATEMENT_INGEST_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache").resolve()


def header_signature(headers: Sequence[Any]) -> str:
    """Return the order-independent cache key for a header row.

    An empty header yields ``""``, which is never stored.
    """

    if not headers:
        return ""
    return SIGNATURE_DELIMITER.join(sorted(str(h).strip().lower() for h in headers))


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write ``payload`` as JSON to ``path`` via a temp file and ``os.replace``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


class MappingCache(Protocol):
    def get(self, headers: Sequence[str]) -> FileMapping | None: ...

    def put(self, headers: Sequence[str], mapping: FileMapping) -> None: ...


class InMemoryMappingCache:
    """Dictionary-backed cache; also records lookups for test assertions."""

    def __init__(self, initial: dict[str, FileMapping] | None = None) -> None:
        self._by_signature: dict[str, FileMapping] = dict(initial or {})
        self.lookups: list[str] = []

    def get(self, headers: Sequence[str]) -> FileMapping | None:
        sig = header_signature(headers)
        self.lookups.append(sig)
        if not sig:
            return None
        return self._by_signature.get(sig)

    def put(self, headers: Sequence[str], mapping: FileMapping) -> None:
        sig = header_signature(headers)
        if sig:
            self._by_signature[sig] = mapping

    def __len__(self) -> int:
        return len(self._by_signature)


class _MappingFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int
    mappings: dict[str, FileMapping]


class JsonFileMappingCache:
    """Mapping cache persisted as one JSON document.

    The file is re-read on every lookup so that separate processes sharing a
    cache root observe each other's writes (last write wins).
    """

    FILENAME = "mappings.json"

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path if self._path is not None else get_cache_root() / self.FILENAME

    def _load(self) -> dict[str, FileMapping]:
        path = self.path
        if not path.exists():
            return {}
        try:
            parsed = _MappingFile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            _logger.debug("mapping_cache:read_failed path=%s", os.fspath(path), exc_info=True)
            return {}
        if parsed.schema_version != SCHEMA_VERSION:
            return {}
        return parsed.mappings

    def get(self, headers: Sequence[str]) -> FileMapping | None:
        sig = header_signature(headers)
        if not sig:
            return None
        mapping = self._load().get(sig)
        if mapping is not None:
            _logger.info("mapping_cache:hit signature=%s", sig)
        return mapping

    def put(self, headers: Sequence[str], mapping: FileMapping) -> None:
        sig = header_signature(headers)
        if not sig:
            return
        mappings = self._load()
        mappings[sig] = mapping
        write_json_atomic(
            self.path,
            {
                "schema_version": SCHEMA_VERSION,
                "mappings": {k: v.to_json_dict() for k, v in mappings.items()},
            },
        )
        _logger.info("mapping_cache:learned signature=%s", sig)


__all__ = [
    "InMemoryMappingCache",
    "JsonFileMappingCache",
    "MappingCache",
    "get_cache_root",
    "header_signature",
    "write_json_atomic",
]
