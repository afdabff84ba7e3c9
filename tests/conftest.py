"""Pytest configuration shared by the suite.

Puts the workspace packages on ``sys.path`` (``packages/`` for
``finance_ingest``, ``libs/db/src`` for ``db``, and the repo root for
``tests.helpers``), isolates environment-driven settings per test, and
provides a per-test SQLite database.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
# Ensure local sources precede anything installed so the workspace copy is tested.
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT)]
    if p not in sys.path
]

from db.client import dispose_engines  # noqa: E402
from finance_ingest.store import SqlAlchemyRecordStore  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db, seed_categories  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's shell or ``.env`` from leaking into tests."""

    for name in (
        "DATABASE_URL",
        "FINANCE_INGEST_LOG_LEVEL",
        "FI_MAX_WORKERS",
        "FI_SKIP_DUPLICATES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def database_url(tmp_path: Path) -> Iterator[str]:
    url = bootstrap_sqlite_db(tmp_path / "finance.db")
    yield url
    dispose_engines()


@pytest.fixture
def store(database_url: str) -> SqlAlchemyRecordStore:
    return SqlAlchemyRecordStore(database_url=database_url)


@pytest.fixture
def user_id() -> str:
    return "user-1"


@pytest.fixture
def categories(database_url: str, user_id: str) -> list[dict[str, str]]:
    return seed_categories(database_url=database_url, user_id=user_id)


@pytest.fixture
def category_ids(categories: list[dict[str, str]]) -> dict[str, str]:
    """Category name → id for the seeded catalog."""

    return {c["name"]: c["id"] for c in categories}
