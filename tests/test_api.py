# ruff: noqa: E402, I001
from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

import finance_ingest.api as api_mod  # noqa: E402
import finance_ingest.learning as learning_mod  # noqa: E402
from finance_ingest.api import (  # noqa: E402
    bulk_update_category,
    categorization_statistics,
    import_csv,
    update_transaction_category,
)
from finance_ingest.errors import (  # noqa: E402
    CategoryNotFound,
    DuplicateCheckError,
    LearningError,
    StoreError,
    TransactionNotFound,
)
from finance_ingest.learning import list_learned_patterns  # noqa: E402
from finance_ingest.store import SqlAlchemyRecordStore, eq  # noqa: E402

from tests.helpers.db import seed_transactions  # noqa: E402

CSV = textwrap.dedent(
    """\
    Transaction Date,Description,Amount
    01/15/2024,STARBUCKS,-5.50
    01/18/2024,SHELL OIL 12345678,-40.00
    01/16/2024,Bad Row,not money
    """
)


class _NoCategoriesStore(SqlAlchemyRecordStore):
    """Store whose category reads fail; everything else works."""

    def select(self, table, filters=(), **kwargs):
        if table == "categories":
            raise StoreError("categories table unavailable")
        return super().select(table, filters, **kwargs)


def _transactions(store, user_id):
    return store.select("transactions", [eq("user_id", user_id)], order_by=("date",))


# ---- import_csv --------------------------------------------------------------


def test_import_stores_categorized_transactions(store, user_id, category_ids):
    summary = import_csv(CSV, user_id, store=store, file_name="chase.csv")

    assert summary.parse_result.detected_format == "chase"
    assert summary.parse_result.error_count == 1
    assert summary.stored_count == 2
    assert summary.duplicate_count == 0
    assert summary.categorized_count == 1
    assert summary.uncategorized_count == 1
    assert summary.average_confidence == 50.0
    assert (summary.min_date, summary.max_date) == ("2024-01-15", "2024-01-18")

    rows = _transactions(store, user_id)
    assert [(r["merchant"], r["category_id"], r["confidence"]) for r in rows] == [
        ("STARBUCKS", category_ids["Dining"], 100),
        ("SHELL OIL", None, 0),
    ]
    assert all(r["is_duplicate"] is False for r in rows)

    payload = summary.to_payload()
    assert payload["summary"]["storedCount"] == 2
    assert payload["categorizationSummary"]["averageConfidence"] == 50.0
    assert payload["dateRange"] == {"minDate": "2024-01-15", "maxDate": "2024-01-18"}


def test_reimport_skips_duplicates(store, user_id, categories):
    import_csv(CSV, user_id, store=store)

    again = import_csv(CSV, user_id, store=store)

    assert again.duplicate_count == 2
    assert again.stored_count == 0
    assert len(_transactions(store, user_id)) == 2


def test_reimport_can_keep_flagged_duplicates(store, user_id, categories):
    first = import_csv(CSV, user_id, store=store)

    again = import_csv(CSV, user_id, store=store, skip_duplicates=False)

    assert again.stored_count == 2
    assert all(r["is_duplicate"] for r in again.stored)
    stored_ids = {r["id"] for r in first.stored}
    assert {d.existing_transaction_id for d in again.duplicates} == stored_ids


def test_import_uses_learned_patterns(store, user_id, category_ids):
    import_csv(CSV, user_id, store=store)
    (shell,) = [r for r in _transactions(store, user_id) if r["merchant"] == "SHELL OIL"]
    update_transaction_category(user_id, shell["id"], category_ids["Transportation"], store=store)

    summary = import_csv(
        "Date,Description,Amount\n02/01/2024,SHELL OIL 99999999,-30.00\n", user_id, store=store
    )

    (row,) = summary.stored
    assert row["category_id"] == category_ids["Transportation"]
    assert row["confidence"] == 100


def test_import_with_only_parse_errors_stores_nothing(store, user_id):
    summary = import_csv("Column1,Column2\nValue1,Value2", user_id, store=store)

    assert summary.stored == []
    assert summary.parse_result.error_count == 3
    assert _transactions(store, user_id) == []


def test_import_without_categories_stores_uncategorized(database_url, user_id, categories):
    store = _NoCategoriesStore(database_url=database_url)

    summary = import_csv(CSV, user_id, store=store)

    assert summary.stored_count == 2
    assert summary.categorized_count == 0
    assert all(r["category_id"] is None for r in summary.stored)


def test_import_with_caller_supplied_catalog(store, user_id, categories):
    catalog = [c for c in categories if c["name"] != "Dining"]

    summary = import_csv(CSV, user_id, store=store, categories=catalog)

    assert summary.categorized_count == 0


def test_import_propagates_duplicate_check_failure(store, user_id, monkeypatch):
    def _broken_select(*args, **kwargs):
        raise StoreError("timeout")

    monkeypatch.setattr(store, "select", _broken_select)

    with pytest.raises(DuplicateCheckError):
        import_csv(CSV, user_id, store=store)


# ---- update_transaction_category ---------------------------------------------


def _seed_one(database_url, user_id, merchant="Corner Deli"):
    (tx_id,) = seed_transactions(
        database_url=database_url,
        user_id=user_id,
        transactions=[{"date": "2024-01-15", "amount_cents": 1200, "merchant": merchant}],
    )
    return tx_id


def test_update_category_learns(store, database_url, user_id, category_ids):
    tx_id = _seed_one(database_url, user_id)

    updated = update_transaction_category(user_id, tx_id, category_ids["Groceries"], store=store)

    assert updated["category_id"] == category_ids["Groceries"]
    (rule,) = list_learned_patterns(user_id, store=store)
    assert (rule.merchant_pattern, rule.category_id) == ("corner deli", category_ids["Groceries"])


def test_update_category_clear_does_not_learn(store, database_url, user_id, category_ids):
    tx_id = _seed_one(database_url, user_id)

    updated = update_transaction_category(user_id, tx_id, None, store=store)

    assert updated["category_id"] is None
    assert list_learned_patterns(user_id, store=store) == []


def test_update_category_errors(store, database_url, user_id, category_ids):
    tx_id = _seed_one(database_url, user_id)

    with pytest.raises(TransactionNotFound):
        update_transaction_category(user_id, "missing", category_ids["Dining"], store=store)
    with pytest.raises(TransactionNotFound):
        update_transaction_category("intruder", tx_id, None, store=store)
    with pytest.raises(CategoryNotFound):
        update_transaction_category(user_id, tx_id, "no-such-category", store=store)


def test_update_category_survives_learning_failure(
    store, database_url, user_id, category_ids, monkeypatch
):
    tx_id = _seed_one(database_url, user_id)

    def _fail(*args, **kwargs):
        raise LearningError("rules table locked")

    monkeypatch.setattr(api_mod, "learn_from_correction", _fail)

    updated = update_transaction_category(user_id, tx_id, category_ids["Dining"], store=store)

    assert updated["category_id"] == category_ids["Dining"]


# ---- bulk_update_category ----------------------------------------------------


def _seed_many(database_url, user_id):
    return seed_transactions(
        database_url=database_url,
        user_id=user_id,
        transactions=[
            {"date": "2024-01-15", "amount_cents": 100, "merchant": "Corner Deli"},
            {"date": "2024-01-16", "amount_cents": 200, "merchant": "Bodega"},
            {"date": "2024-01-17", "amount_cents": 300, "merchant": "Corner Deli"},
        ],
    )


def test_bulk_update_category(store, database_url, user_id, category_ids):
    ids = _seed_many(database_url, user_id)

    result = bulk_update_category(
        user_id, ids + [ids[0]], category_ids["Groceries"], store=store, concurrency=1
    )

    assert result.updated_count == 3
    assert result.learning.failed == 0
    rules = list_learned_patterns(user_id, store=store)
    assert sorted(r.merchant_pattern for r in rules) == ["bodega", "corner deli"]


def test_bulk_update_same_new_merchant_learns_once(store, database_url, user_id, category_ids):
    for round_no in range(5):
        ids = seed_transactions(
            database_url=database_url,
            user_id=user_id,
            transactions=[
                {
                    "date": f"2024-02-0{day}",
                    "amount_cents": 100 * day,
                    "merchant": f"NEWSHOP{round_no}",
                }
                for day in range(1, 5)
            ],
        )

        result = bulk_update_category(
            user_id, ids, category_ids["Shopping"], store=store, concurrency=4
        )

        assert result.updated_count == 4
        assert result.learning.failed == 0
        assert len(result.learning.learned) == 4
        rules = list_learned_patterns(user_id, store=store, merchant_pattern=f"newshop{round_no}")
        assert [r.category_id for r in rules] == [category_ids["Shopping"]]


def test_bulk_update_rejects_foreign_ids(store, database_url, user_id, category_ids):
    ids = _seed_many(database_url, user_id)

    with pytest.raises(TransactionNotFound, match="ghost"):
        bulk_update_category(user_id, [ids[0], "ghost"], category_ids["Dining"], store=store)

    assert all(r["category_id"] is None for r in _transactions(store, user_id))


def test_bulk_update_requires_ids(store, user_id):
    with pytest.raises(ValueError):
        bulk_update_category(user_id, [], None, store=store)


def test_bulk_update_reports_partial_learning_failure(
    store, database_url, user_id, category_ids, monkeypatch
):
    ids = _seed_many(database_url, user_id)
    real = learning_mod.learn_from_correction

    def _flaky(uid, tx, category_id, *, store):
        if tx["merchant"] == "Bodega":
            raise LearningError("boom")
        return real(uid, tx, category_id, store=store)

    monkeypatch.setattr(learning_mod, "learn_from_correction", _flaky)

    result = bulk_update_category(
        user_id, ids, category_ids["Groceries"], store=store, concurrency=1
    )

    assert result.updated_count == 3
    assert result.learning.failed == 1
    assert len(result.learning.learned) == 2


def test_bulk_clear_does_not_learn(store, database_url, user_id, category_ids):
    ids = _seed_many(database_url, user_id)

    result = bulk_update_category(user_id, ids, None, store=store)

    assert result.updated_count == 3
    assert result.learning.learned == ()
    assert list_learned_patterns(user_id, store=store) == []


# ---- categorization_statistics -----------------------------------------------


def _categorized(day: str, category_id: str | None = None, confidence: int | None = None):
    return {
        "date": day,
        "amount_cents": 100,
        "merchant": f"merchant {day}",
        "category_id": category_id,
        "confidence": confidence,
    }


def test_categorization_statistics(store, database_url, user_id, category_ids):
    dining, shopping = category_ids["Dining"], category_ids["Shopping"]
    seed_transactions(
        database_url=database_url,
        user_id=user_id,
        transactions=[
            _categorized("2024-01-01", dining, 100),
            _categorized("2024-01-02", dining, 85),
            _categorized("2024-01-03", shopping, 75),
            _categorized("2024-01-04"),
            _categorized("2024-03-01", shopping, 90),
        ],
    )

    stats = categorization_statistics(
        user_id, store=store, start_date="2024-01-01", end_date="2024-01-31"
    )

    assert (stats.total, stats.categorized, stats.uncategorized) == (4, 3, 1)
    assert stats.average_confidence == 86.67
    assert [(c.category_name, c.count) for c in stats.distribution] == [
        ("Dining", 2),
        ("Shopping", 1),
    ]


def test_categorization_statistics_empty(store, user_id):
    stats = categorization_statistics(user_id, store=store)

    assert (stats.total, stats.categorized, stats.average_confidence) == (0, 0, 0.0)
    assert stats.distribution == ()


def test_statistics_unknown_category_names(database_url, user_id, category_ids):
    seed_transactions(
        database_url=database_url,
        user_id=user_id,
        transactions=[_categorized("2024-01-01", category_ids["Dining"], 100)],
    )

    stats = categorization_statistics(user_id, store=_NoCategoriesStore(database_url=database_url))

    assert [c.category_name for c in stats.distribution] == ["Unknown"]
