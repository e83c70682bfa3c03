"""Pytest configuration for test isolation.

The pipeline persists learned mappings and category rules under a cache root
(``./.cache`` by default) and consults OpenAI whenever ``OPENAI_API_KEY`` is
set. Both would leak state between tests or reach the network, so every test
gets its own cache directory and runs with the oracle disabled. Tests that
exercise the OpenAI adapter construct it explicitly with a stubbed client.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test cache root and keep the AI oracle switched off."""

    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("STATEMENT_INGEST_CACHE_DIR", os.fspath(cache_root))
    monkeypatch.setenv("STATEMENT_INGEST_DISABLE_AI", "1")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("STATEMENT_INGEST_OPENAI_MODEL", raising=False)
    return cache_root


@pytest.fixture
def cache_root(_isolate_environment: Path) -> Path:
    return _isolate_environment
