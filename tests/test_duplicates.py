# ruff: noqa: E402, I001
from __future__ import annotations

import sys
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from finance_ingest.duplicates import (  # noqa: E402
    create_duplicate_hash,
    filter_duplicates,
    find_duplicates,
)
from finance_ingest.errors import DuplicateCheckError, StoreError  # noqa: E402
from finance_ingest.models import ParsedTransaction  # noqa: E402

from tests.helpers.db import seed_transactions  # noqa: E402


def _tx(date: str, cents: int, merchant: str, **extra) -> dict:
    return {"date": date, "amount_cents": cents, "merchant": merchant, **extra}


# ---- Hashing -----------------------------------------------------------------


def test_hash_format():
    h = create_duplicate_hash(_tx("2024-01-15", 550, "The Coffee Bean Inc."))
    assert h == "2024-01-15|550|coffee bean"


def test_hash_ignores_case_whitespace_time_and_description():
    a = create_duplicate_hash(_tx("2024-01-15", 550, "STARBUCKS", description="one"))
    b = create_duplicate_hash(_tx("2024-01-15T08:30:00", 550, "  starbucks ", description="two"))
    c = create_duplicate_hash(_tx("2024-01-15 08:30:00", 550, "Starbucks"))
    assert a == b == c


@pytest.mark.parametrize(
    "other",
    [
        _tx("2024-01-16", 550, "STARBUCKS"),
        _tx("2024-01-15", 551, "STARBUCKS"),
        _tx("2024-01-15", 550, "PEETS"),
    ],
)
def test_hash_changes_with_date_amount_or_merchant(other):
    assert create_duplicate_hash(_tx("2024-01-15", 550, "STARBUCKS")) != create_duplicate_hash(
        other
    )


def test_hash_accepts_parsed_transactions():
    parsed = ParsedTransaction(
        date="2024-01-15",
        amount_cents=550,
        merchant="STARBUCKS",
        description=None,
        transaction_type="debit",
    )
    expected = create_duplicate_hash(_tx("2024-01-15", 550, "starbucks"))
    assert create_duplicate_hash(parsed) == expected


# ---- Filtering ---------------------------------------------------------------


def test_filter_duplicates_skip_and_flag():
    txs = [
        _tx("2024-01-15", 550, "STARBUCKS"),
        _tx("2024-01-16", 1000, "AMAZON"),
        _tx("2024-01-17", 200, "SUBWAY"),
    ]
    dup_hashes = {create_duplicate_hash(txs[1])}

    kept = filter_duplicates(txs, dup_hashes, skip_duplicates=True)
    assert [t["merchant"] for t in kept] == ["STARBUCKS", "SUBWAY"]
    assert all(t["is_duplicate"] is False for t in kept)

    flagged = filter_duplicates(txs, dup_hashes, skip_duplicates=False)
    assert [t["is_duplicate"] for t in flagged] == [False, True, False]
    # Inputs are not mutated.
    assert "is_duplicate" not in txs[1]


# ---- Store-backed detection --------------------------------------------------


class _UnusedStore:
    def select(self, *args, **kwargs):  # pragma: no cover - must not be reached
        raise AssertionError("store should not be queried for an empty batch")


class _BrokenStore:
    def select(self, *args, **kwargs):
        raise StoreError("connection refused")


def test_find_duplicates_empty_batch_skips_the_store():
    report = find_duplicates([], "user-1", store=_UnusedStore())
    assert report.duplicates == ()
    assert report.duplicate_hashes == frozenset()


def test_find_duplicates_against_stored_rows(store, database_url, user_id):
    (existing_id,) = seed_transactions(
        database_url=database_url,
        user_id=user_id,
        transactions=[_tx("2024-01-15", 550, "STARBUCKS")],
    )
    # Same content for another user must not count.
    seed_transactions(
        database_url=database_url,
        user_id="someone-else",
        transactions=[_tx("2024-01-16", 1000, "AMAZON")],
    )

    incoming = [
        _tx("2024-01-15", 550, "Starbucks"),
        _tx("2024-01-16", 1000, "AMAZON"),
        _tx("2024-01-15", 550, "STARBUCKS "),
    ]
    report = find_duplicates(incoming, user_id, store=store)

    assert len(report.duplicates) == 2
    assert {d.existing_transaction_id for d in report.duplicates} == {existing_id}
    assert report.duplicate_hashes == {"2024-01-15|550|starbucks"}
    assert [d.transaction["merchant"] for d in report.duplicates] == ["Starbucks", "STARBUCKS "]


def test_find_duplicates_ignores_rows_outside_the_batch_range(store, database_url, user_id):
    seed_transactions(
        database_url=database_url,
        user_id=user_id,
        transactions=[_tx("2024-03-01", 550, "STARBUCKS")],
    )

    report = find_duplicates([_tx("2024-01-15", 550, "STARBUCKS")], user_id, store=store)
    assert report.duplicates == ()


def test_find_duplicates_store_failure():
    with pytest.raises(DuplicateCheckError, match="Failed to check for duplicates") as excinfo:
        find_duplicates([_tx("2024-01-15", 550, "X")], "user-1", store=_BrokenStore())
    assert isinstance(excinfo.value.__cause__, StoreError)
