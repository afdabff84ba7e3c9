"""DB helpers for tests: bootstrap a temporary SQLite DB and seed categories."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from db import Base
from db.client import get_engine, session_scope
from db.models.finance import Category, Transaction
from sqlalchemy import event
from sqlalchemy import text as sql_text

DEFAULT_CATEGORY_NAMES: tuple[str, ...] = (
    "Dining",
    "Shopping",
    "Groceries",
    "Transportation",
    "Utilities",
    "Entertainment",
    "Healthcare",
)


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default), which the
    thread-pooled learning and categorization paths rely on.
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    # Enforce FKs and provide a `now()` shim so server_default=now() works
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")
        dbapi_conn.create_function(
            "now", 0, lambda: datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        )

    Base.metadata.create_all(bind=engine)
    _assert_schema_in_sync(url)
    return url


def seed_categories(
    *, database_url: str, user_id: str, names: tuple[str, ...] = DEFAULT_CATEGORY_NAMES
) -> list[dict[str, str]]:
    """Insert one category per name for ``user_id`` and return ``{id, name}`` dicts."""

    with session_scope(database_url=database_url) as session:
        rows = [Category(user_id=user_id, name=name) for name in names]
        session.add_all(rows)
        session.flush()
        return [{"id": r.id, "name": r.name} for r in rows]


def seed_transactions(
    *, database_url: str, user_id: str, transactions: list[dict[str, Any]]
) -> list[str]:
    """Insert stored transactions directly through the ORM and return their ids."""

    with session_scope(database_url=database_url) as session:
        rows = []
        for tx in transactions:
            payload = dict(tx)
            if isinstance(payload.get("date"), str):
                payload["date"] = datetime.fromisoformat(payload["date"]).date()
            payload.setdefault("transaction_type", "debit")
            rows.append(Transaction(user_id=user_id, **payload))
        session.add_all(rows)
        session.flush()
        return [r.id for r in rows]


def _assert_schema_in_sync(database_url: str) -> None:
    """ORM column set matches the SQLite table column set for every table."""

    with session_scope(database_url=database_url) as session:
        for table in Base.metadata.sorted_tables:
            expected = {c.name for c in table.columns}
            rows = session.execute(sql_text(f"PRAGMA table_info('{table.name}')")).fetchall()
            got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
            assert got == expected, f"{table.name} schema drift: {expected ^ got}"
