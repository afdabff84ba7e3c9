"""Content-hash duplicate detection against a user's stored transactions.

Two transactions are duplicates when they share a :data:`DuplicateHash`:
same calendar date, same amount in cents, same normalized merchant. Description,
category, and transaction type are ignored, and ids play no part.

Public surface:
- ``create_duplicate_hash``: pure hash of one transaction.
- ``find_duplicates``: one range query over the batch's date span, then an
  in-memory hash join.
- ``filter_duplicates``: pure skip-or-flag transform for the import step.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Sequence
from datetime import date
from typing import Any

from .errors import DuplicateCheckError, StoreError
from .logging_setup import get_logger
from .models import (
    DuplicateHash,
    DuplicateMatch,
    DuplicateReport,
    ParsedTransaction,
    TransactionRecord,
)
from .normalizers import normalize_merchant
from .store import RecordStore, eq, gte, lte

_logger = get_logger("finance_ingest.duplicates")

_TIME_SEP_RE = re.compile(r"[T ]")

type DuplicateCandidate = ParsedTransaction | TransactionRecord


def _as_record(tx: DuplicateCandidate) -> dict[str, Any]:
    if isinstance(tx, ParsedTransaction):
        return tx.as_record()
    return dict(tx)


def _date_part(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()[:10]
    return _TIME_SEP_RE.split(str(value).strip(), maxsplit=1)[0]


def create_duplicate_hash(tx: DuplicateCandidate) -> DuplicateHash:
    """Return ``"<date>|<amount_cents>|<normalized merchant>"`` for ``tx``.

    Any time-of-day component on the date is ignored.
    """

    rec = tx.as_record() if isinstance(tx, ParsedTransaction) else tx
    merchant = normalize_merchant(rec.get("merchant"))
    return f"{_date_part(rec['date'])}|{int(rec['amount_cents'])}|{merchant}"


def find_duplicates(
    transactions: Sequence[DuplicateCandidate],
    user_id: str,
    *,
    store: RecordStore,
) -> DuplicateReport:
    """Report every incoming transaction whose hash matches a stored one.

    Only the user's rows inside the batch's inclusive date span are fetched.
    Each collision is paired with the id of the first stored row carrying that
    hash; two incoming rows with the same hash are both reported.

    Raises :class:`~finance_ingest.errors.DuplicateCheckError` when the store
    query fails.
    """

    if not transactions:
        return DuplicateReport()

    records = [_as_record(tx) for tx in transactions]
    hashes = [create_duplicate_hash(r) for r in records]
    dates = [_date_part(r["date"]) for r in records]
    min_date, max_date = min(dates), max(dates)

    try:
        existing = store.select(
            "transactions",
            [eq("user_id", user_id), gte("date", min_date), lte("date", max_date)],
            columns=("id", "date", "amount_cents", "merchant"),
        )
    except StoreError as exc:
        _logger.error(
            "find_duplicates:query_failed user_id=%s min_date=%s max_date=%s error=%s",
            user_id,
            min_date,
            max_date,
            exc,
        )
        raise DuplicateCheckError(f"Failed to check for duplicates: {exc}") from exc

    existing_ids: dict[DuplicateHash, str] = {}
    for row in existing:
        existing_ids.setdefault(create_duplicate_hash(row), str(row["id"]))

    duplicates: list[DuplicateMatch] = []
    colliding: set[DuplicateHash] = set()
    for rec, h in zip(records, hashes, strict=True):
        existing_id = existing_ids.get(h)
        if existing_id is None:
            continue
        duplicates.append(
            DuplicateMatch(transaction=rec, existing_transaction_id=existing_id, duplicate_hash=h)
        )
        colliding.add(h)

    _logger.info(
        "find_duplicates:done user_id=%s incoming=%d existing=%d duplicates=%d",
        user_id,
        len(records),
        len(existing),
        len(duplicates),
    )
    return DuplicateReport(duplicates=tuple(duplicates), duplicate_hashes=frozenset(colliding))


def filter_duplicates(
    transactions: Sequence[DuplicateCandidate],
    duplicate_hashes: Collection[DuplicateHash],
    skip_duplicates: bool,
) -> list[dict[str, Any]]:
    """Drop or flag duplicates.

    With ``skip_duplicates`` the hits are removed and survivors carry
    ``is_duplicate=False``. Otherwise every input is kept, in order, with
    ``is_duplicate`` set from ``duplicate_hashes``.
    """

    out: list[dict[str, Any]] = []
    for tx in transactions:
        rec = _as_record(tx)
        is_dup = create_duplicate_hash(rec) in duplicate_hashes
        if skip_duplicates and is_dup:
            continue
        rec["is_duplicate"] = is_dup
        out.append(rec)
    return out


__all__ = ["create_duplicate_hash", "find_duplicates", "filter_duplicates"]
