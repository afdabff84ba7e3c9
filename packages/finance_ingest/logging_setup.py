"""Logging for ``finance_ingest``.

Library modules call ``get_logger("finance_ingest.<module>")`` and never add
handlers. Entrypoints call :func:`configure_logging` once; the CLI resolves
the level from ``--log-level`` or :attr:`finance_ingest.config.Settings.log_level`.

Batch categorization and bulk learning log from ``p_map`` worker threads, so
the format carries the thread name to keep interleaved records attributable.
``sql=True`` also routes SQLAlchemy's statement log (``sqlalchemy.engine``)
through the same handler.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

_PKG_LOGGER_NAME = "finance_ingest"
_SQL_LOGGER_NAME = "sqlalchemy.engine"
_DEFAULT_FMT = "%(asctime)s %(name)s [%(threadName)s] %(levelname)s %(message)s"
_CONFIGURED = False


def parse_level(level: int | str | None) -> int:
    """Numeric level for ``level``; unknown names and ``None`` give ``INFO``."""

    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelNamesMapping().get(name)
        if numeric is not None:
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    sql: bool = False,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FMT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    if sql:
        sql_logger = logging.getLogger(_SQL_LOGGER_NAME)
        sql_logger.setLevel(logging.INFO)
        sql_logger.addHandler(handler)
        sql_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "parse_level"]
