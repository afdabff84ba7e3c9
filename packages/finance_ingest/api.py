"""Orchestration for the calling layer: CSV import, category edits, statistics.

These are the operations a route handler (or the CLI) performs on behalf of
an authenticated user. Each takes an explicit :class:`RecordStore`; the CLI
builds a :class:`~finance_ingest.store.SqlAlchemyRecordStore` for the resolved
``DATABASE_URL``.

Error contract
--------------
- Parse problems are data inside :class:`ParseResult`.
- Duplicate-check and store failures propagate
  (:class:`DuplicateCheckError`, :class:`StoreError`).
- Learning triggered by an edit never fails the edit; it is logged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .categorize import categorize_transactions
from .duplicates import filter_duplicates, find_duplicates
from .errors import CategoryNotFound, LearningError, StoreError, TransactionNotFound
from .learning import learn_from_correction, learn_from_corrections
from .logging_setup import get_logger
from .models import (
    BulkUpdateResult,
    CategorizationStatistics,
    Category,
    CategoryCount,
    ImportSummary,
    coerce_categories,
)
from .parsers.csv_parser import parse_csv
from .store import RecordStore, eq, gte, in_, lte

_logger = get_logger("finance_ingest.api")

UNKNOWN_CATEGORY_NAME = "Unknown"


def _average(values: Sequence[int]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def load_categories(user_id: str, *, store: RecordStore) -> list[Category]:
    """The user's category catalog as validated :class:`Category` models."""

    rows = store.select("categories", [eq("user_id", user_id)], order_by=("name",))
    return coerce_categories(rows)


def import_csv(
    content: str | bytes,
    user_id: str,
    *,
    store: RecordStore,
    file_name: str | None = None,
    skip_duplicates: bool = True,
    categories: Sequence[Category | Mapping[str, Any]] | None = None,
) -> ImportSummary:
    """Parse, de-duplicate, categorize, and store a bank CSV export.

    Input
    -----
    content:
        Raw CSV text or bytes.
    skip_duplicates:
        ``True`` drops transactions already stored for the user; ``False``
        stores them with ``is_duplicate=True``.
    categories:
        The user's catalog. Loaded from the store when omitted; if that load
        fails the transactions are stored uncategorized.

    Output
    ------
    An :class:`ImportSummary` with the parse result, the duplicates found
    (always reported, whichever mode), and the stored rows.
    """

    parse_result = parse_csv(content, file_name)
    _logger.info(
        "import_csv:parsed user_id=%s file=%s format=%s total_rows=%d success=%d errors=%d",
        user_id,
        file_name,
        parse_result.detected_format,
        parse_result.total_rows,
        parse_result.success_count,
        parse_result.error_count,
    )
    if not parse_result.transactions:
        return ImportSummary(
            parse_result=parse_result, duplicates=(), stored=[], skip_duplicates=skip_duplicates
        )

    report = find_duplicates(parse_result.transactions, user_id, store=store)
    to_insert = filter_duplicates(
        parse_result.transactions, report.duplicate_hashes, skip_duplicates
    )
    for rec in to_insert:
        rec["category_id"] = None
        rec["confidence"] = None

    stored: list[dict[str, Any]] = []
    if to_insert:
        catalog: Sequence[Category | Mapping[str, Any]] | None = categories
        if catalog is None:
            try:
                catalog = load_categories(user_id, store=store)
            except StoreError as exc:
                _logger.error(
                    "import_csv:categories_failed user_id=%s error=%s; storing uncategorized",
                    user_id,
                    exc,
                )
        if catalog is not None:
            results = categorize_transactions(to_insert, catalog, user_id, store=store)
            for rec, result in zip(to_insert, results, strict=True):
                rec["category_id"] = result.category_id
                rec["confidence"] = result.confidence

        stored = store.insert("transactions", [{**rec, "user_id": user_id} for rec in to_insert])

    categorized = [r for r in stored if r.get("category_id") is not None]
    dates = sorted(str(r["date"])[:10] for r in stored)
    summary = ImportSummary(
        parse_result=parse_result,
        duplicates=report.duplicates,
        stored=stored,
        skip_duplicates=skip_duplicates,
        categorized_count=len(categorized),
        uncategorized_count=len(stored) - len(categorized),
        average_confidence=_average(
            [r["confidence"] for r in stored if r.get("confidence") is not None]
        ),
        min_date=dates[0] if dates else None,
        max_date=dates[-1] if dates else None,
    )
    _logger.info(
        "import_csv:done user_id=%s stored=%d duplicates=%d skip_duplicates=%s categorized=%d",
        user_id,
        summary.stored_count,
        summary.duplicate_count,
        skip_duplicates,
        summary.categorized_count,
    )
    return summary


def _ensure_category(user_id: str, category_id: str, *, store: RecordStore) -> None:
    rows = store.select(
        "categories", [eq("user_id", user_id), eq("id", category_id)], columns=("id",), limit=1
    )
    if not rows:
        raise CategoryNotFound(f"Category {category_id} not found")


def update_transaction_category(
    user_id: str,
    transaction_id: str,
    category_id: str | None,
    *,
    store: RecordStore,
) -> dict[str, Any]:
    """Set one transaction's category and learn from the correction.

    Clearing the category (``None``) does not learn. Raises
    :class:`TransactionNotFound` for an id the user does not own and
    :class:`CategoryNotFound` for an unknown category.
    """

    if category_id is not None:
        _ensure_category(user_id, category_id, store=store)
    rows = store.update(
        "transactions",
        [eq("user_id", user_id), eq("id", transaction_id)],
        {"category_id": category_id},
    )
    if not rows:
        raise TransactionNotFound(f"Transaction {transaction_id} not found")
    updated = rows[0]

    if category_id is not None:
        try:
            learn_from_correction(user_id, updated, category_id, store=store)
        except LearningError as exc:
            _logger.error(
                "update_transaction_category:learning_failed user_id=%s transaction_id=%s error=%s",
                user_id,
                transaction_id,
                exc,
            )
    return updated


def bulk_update_category(
    user_id: str,
    transaction_ids: Sequence[str],
    category_id: str | None,
    *,
    store: RecordStore,
    concurrency: int | None = None,
) -> BulkUpdateResult:
    """Set the category on many transactions, then learn from each.

    All ids must belong to the user, otherwise nothing is updated and
    :class:`TransactionNotFound` names the missing ids. Learning runs
    concurrently and partial failure is reported, not raised.
    """

    ids = list(dict.fromkeys(transaction_ids))
    if not ids:
        raise ValueError("At least one transaction ID is required")
    if category_id is not None:
        _ensure_category(user_id, category_id, store=store)

    owned = store.select(
        "transactions", [eq("user_id", user_id), in_("id", ids)], columns=("id",)
    )
    missing = sorted(set(ids) - {r["id"] for r in owned})
    if missing:
        raise TransactionNotFound(
            f"Transactions not found or do not belong to user: {', '.join(missing)}"
        )

    updated = store.update(
        "transactions",
        [eq("user_id", user_id), in_("id", ids)],
        {"category_id": category_id},
    )
    _logger.info(
        "bulk_update_category:updated user_id=%s category_id=%s count=%d",
        user_id,
        category_id,
        len(updated),
    )

    if category_id is None:
        return BulkUpdateResult(updated=updated)
    outcome = learn_from_corrections(
        user_id, updated, category_id, store=store, concurrency=concurrency
    )
    return BulkUpdateResult(updated=updated, learning=outcome)


def categorization_statistics(
    user_id: str,
    *,
    store: RecordStore,
    start_date: str | None = None,
    end_date: str | None = None,
    categories: Sequence[Category | Mapping[str, Any]] | None = None,
) -> CategorizationStatistics:
    """Categorization coverage for the user's transactions in an optional date range.

    ``average_confidence`` covers categorized transactions only, rounded to
    two places. The distribution is ordered by count, highest first; category
    names missing from the catalog are reported as ``"Unknown"``.
    """

    filters = [eq("user_id", user_id)]
    if start_date:
        filters.append(gte("date", start_date))
    if end_date:
        filters.append(lte("date", end_date))
    rows = store.select("transactions", filters, columns=("category_id", "confidence"))

    total = len(rows)
    counts: dict[str, int] = {}
    confidences: list[int] = []
    for row in rows:
        cid = row.get("category_id")
        if cid is None:
            continue
        counts[cid] = counts.get(cid, 0) + 1
        if row.get("confidence") is not None:
            confidences.append(int(row["confidence"]))
    categorized = sum(counts.values())

    names: dict[str, str] = {}
    if counts:
        if categories is not None:
            names = {c.id: c.name for c in coerce_categories(categories)}
        else:
            try:
                cat_rows = store.select(
                    "categories",
                    [eq("user_id", user_id), in_("id", list(counts))],
                    columns=("id", "name"),
                )
                names = {r["id"]: r["name"] for r in cat_rows}
            except StoreError as exc:
                _logger.error(
                    "categorization_statistics:categories_failed user_id=%s error=%s",
                    user_id,
                    exc,
                )

    distribution = sorted(
        (
            CategoryCount(
                category_id=cid, category_name=names.get(cid, UNKNOWN_CATEGORY_NAME), count=n
            )
            for cid, n in counts.items()
        ),
        key=lambda c: c.count,
        reverse=True,
    )
    return CategorizationStatistics(
        total=total,
        categorized=categorized,
        uncategorized=total - categorized,
        average_confidence=_average(confidences),
        distribution=tuple(distribution),
    )


__all__ = [
    "load_categories",
    "import_csv",
    "update_transaction_category",
    "bulk_update_category",
    "categorization_statistics",
]
