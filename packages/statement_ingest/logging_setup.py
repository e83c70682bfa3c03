"""Logging configuration shared by the ``statement_ingest`` package.

Entry points (the CLI, a host application) call :func:`configure_logging`
once. Library modules only ever call :func:`get_logger` with a dotted name
under ``statement_ingest`` and never attach handlers themselves.

Messages follow a terse ``event key=value`` shape, e.g.
``transform:strategy name=cache owner=alice transactions=12``, so they stay
greppable in plain stderr output.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "statement_ingest"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_handler: logging.Handler | None = None


def resolve_level(level: int | str | None) -> int:
    """Translate ``level`` into a numeric logging level.

    ``None`` falls back to ``STATEMENT_INGEST_LOG_LEVEL`` and then ``INFO``.
    Unknown names also resolve to ``INFO`` rather than raising.
    """

    if level is None:
        level = os.getenv("STATEMENT_INGEST_LOG_LEVEL")
        if not level:
            return logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach a single ``StreamHandler`` to the package logger.

    Repeated calls only adjust the level of the existing handler so that a
    CLI callback and an embedding application can both call this safely.
    """

    global _handler
    numeric = resolve_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)

    if _handler is not None:
        _handler.setLevel(numeric)
        logger.setLevel(numeric)
        return

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(numeric)
    # Keep records out of the root logger's handlers.
    logger.propagate = False
    _handler = handler


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a library-safe default.

    Until :func:`configure_logging` runs, the package logger carries a
    ``NullHandler`` so importing the library never prints anything.
    """

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
