"""Record-store interface and its SQLAlchemy adapter.

Duplicate detection, learning, and the import pipeline talk to persistence
only through :class:`RecordStore`: ``insert``/``select``/``update``/``delete``
over named tables with simple column filters. Rows go in and come out as
plain dicts, with dates and datetimes rendered as ISO strings.

:class:`SqlAlchemyRecordStore` maps the interface onto the ORM models owned by
``libs/db`` and runs each call in its own ``db.client.session_scope``.
Failures surface as :class:`~finance_ingest.errors.StoreError`, and
uniqueness violations as :class:`~finance_ingest.errors.UniqueViolation`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any, Literal, Protocol

from db.client import session_scope
from db.models.finance import CategorizationRule, Category, Transaction
from sqlalchemy import Date, DateTime, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreError, UniqueViolation
from .logging_setup import get_logger

_logger = get_logger("finance_ingest.store")

type FilterOp = Literal["eq", "gte", "lte", "in", "ilike"]
type Row = dict[str, Any]


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    op: FilterOp
    value: Any


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def ilike(column: str, pattern: str) -> Filter:
    """Case-insensitive SQL ``LIKE``; ``pattern`` carries its own ``%`` wildcards."""

    return Filter(column, "ilike", pattern)


class RecordStore(Protocol):
    """Table-oriented persistence used by the ingest core.

    ``order_by`` entries name a column; a leading ``-`` sorts descending.
    """

    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[Row]: ...

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        columns: Sequence[str] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]: ...

    def update(
        self, table: str, filters: Sequence[Filter], patch: Mapping[str, Any]
    ) -> list[Row]: ...

    def delete(self, table: str, filters: Sequence[Filter]) -> int: ...


_MODELS: dict[str, type] = {
    "transactions": Transaction,
    "categories": Category,
    "categorization_rules": CategorizationRule,
}


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == "23505":
        return True
    msg = str(orig)
    return "UNIQUE constraint failed" in msg or "duplicate key value" in msg


def _render(value: Any) -> Any:
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


class SqlAlchemyRecordStore:
    """:class:`RecordStore` backed by the ``db`` library's ORM models.

    ``database_url`` defaults to ``DATABASE_URL`` (resolved by ``db.client``
    on first use).
    """

    def __init__(self, database_url: str | None = None) -> None:
        self._database_url = database_url

    # -- helpers ---------------------------------------------------------

    def _model(self, table: str) -> type:
        try:
            return _MODELS[table]
        except KeyError:
            raise StoreError(f"unknown table: {table}") from None

    def _column(self, model: type, name: str):
        col = model.__table__.columns.get(name)
        if col is None:
            raise StoreError(f"unknown column: {model.__tablename__}.{name}")
        return col

    def _coerce(self, model: type, name: str, value: Any) -> Any:
        # SQLite's Date/DateTime processors only accept Python objects.
        col = self._column(model, name)
        if isinstance(value, str):
            if isinstance(col.type, DateTime):
                return datetime.fromisoformat(value)
            if isinstance(col.type, Date):
                return date.fromisoformat(value[:10])
        return value

    def _coerce_record(self, model: type, record: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self._coerce(model, k, v) for k, v in record.items()}

    def _where(self, model: type, filters: Sequence[Filter]) -> list[Any]:
        clauses = []
        for f in filters:
            attr = getattr(model, self._column(model, f.column).key)
            if f.op == "eq":
                value = self._coerce(model, f.column, f.value)
                clauses.append(attr.is_(None) if value is None else attr == value)
            elif f.op == "gte":
                clauses.append(attr >= self._coerce(model, f.column, f.value))
            elif f.op == "lte":
                clauses.append(attr <= self._coerce(model, f.column, f.value))
            elif f.op == "in":
                clauses.append(attr.in_([self._coerce(model, f.column, v) for v in f.value]))
            elif f.op == "ilike":
                clauses.append(attr.ilike(f.value))
            else:
                raise StoreError(f"unsupported filter op: {f.op}")
        return clauses

    def _to_row(self, model: type, obj: Any, columns: Sequence[str] | None = None) -> Row:
        names = columns if columns else [c.name for c in model.__table__.columns]
        return {name: _render(getattr(obj, name)) for name in names}

    @contextmanager
    def _scope(self, action: str, table: str) -> Iterator[Session]:
        try:
            with session_scope(database_url=self._database_url) as session:
                yield session
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise UniqueViolation(f"{action} {table}: unique constraint violated") from exc
            _logger.error("store:%s_failed table=%s error=%s", action, table, exc.orig)
            raise StoreError(f"{action} {table} failed: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            _logger.error("store:%s_failed table=%s error=%s", action, table, exc)
            raise StoreError(f"{action} {table} failed: {exc}") from exc

    # -- RecordStore -----------------------------------------------------

    def insert(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[Row]:
        model = self._model(table)
        if not records:
            return []
        objs = [model(**self._coerce_record(model, r)) for r in records]
        with self._scope("insert", table) as session:
            session.add_all(objs)
            session.flush()
            return [self._to_row(model, o) for o in objs]

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        columns: Sequence[str] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]:
        model = self._model(table)
        for name in columns or ():
            self._column(model, name)
        stmt = select(model).where(*self._where(model, filters))
        for key in order_by:
            desc = key.startswith("-")
            attr = getattr(model, self._column(model, key.lstrip("-")).key)
            stmt = stmt.order_by(attr.desc() if desc else attr.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._scope("select", table) as session:
            objs = session.scalars(stmt).all()
            return [self._to_row(model, o, columns) for o in objs]

    def update(self, table: str, filters: Sequence[Filter], patch: Mapping[str, Any]) -> list[Row]:
        """Apply ``patch`` to every matching row and return the updated rows.

        ``updated_at`` is refreshed unless the patch sets it explicitly.
        """

        model = self._model(table)
        values = self._coerce_record(model, patch)
        if "updated_at" in model.__table__.columns and "updated_at" not in values:
            values["updated_at"] = datetime.now(UTC)
        stmt = select(model).where(*self._where(model, filters))
        with self._scope("update", table) as session:
            objs = session.scalars(stmt).all()
            for obj in objs:
                for key, value in values.items():
                    setattr(obj, key, value)
            session.flush()
            return [self._to_row(model, o) for o in objs]

    def delete(self, table: str, filters: Sequence[Filter]) -> int:
        model = self._model(table)
        stmt = delete(model).where(*self._where(model, filters))
        with self._scope("delete", table) as session:
            result = session.execute(stmt)
            return result.rowcount or 0


__all__ = [
    "Filter",
    "FilterOp",
    "eq",
    "gte",
    "lte",
    "in_",
    "ilike",
    "RecordStore",
    "SqlAlchemyRecordStore",
]
