"""Environment-driven settings.

Entrypoints load a local ``.env`` (python-dotenv) before calling
:meth:`Settings.from_env`; library code receives explicit arguments and only
falls back to these values when the caller passes ``None``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_DEFAULT_MAX_WORKERS = 4
_MAX_WORKERS_CAP = 32


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def resolve_max_workers(requested: int | None = None, *, n_items: int | None = None) -> int:
    """Resolve a bounded worker count for concurrent store round-trips.

    Honors ``requested`` first, then ``FI_MAX_WORKERS``; caps at 32 and at
    ``n_items`` when given, never returning less than 1.
    """

    workers = requested
    if workers is None:
        raw = os.getenv("FI_MAX_WORKERS")
        try:
            workers = int(raw) if raw else None
        except ValueError:
            workers = None
    if workers is None or workers < 1:
        workers = _DEFAULT_MAX_WORKERS
    workers = min(workers, _MAX_WORKERS_CAP)
    if n_items is not None:
        workers = min(workers, max(1, n_items))
    return max(1, workers)


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None
    log_level: str | None
    skip_duplicates: bool

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            log_level=os.getenv("FINANCE_INGEST_LOG_LEVEL") or None,
            skip_duplicates=_env_bool("FI_SKIP_DUPLICATES", True),
        )


__all__ = ["Settings", "resolve_max_workers"]
