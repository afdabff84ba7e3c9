"""Learned merchant→category patterns built from user corrections.

A pattern is a normalized merchant string (see
:func:`finance_ingest.normalizers.normalize_merchant`) owned by one user and
pointing at one category. The newest correction for a pattern wins: storing a
pattern that already exists repoints the most recently updated rule rather
than adding a second one. The ``(user_id, merchant_pattern, category_id)``
uniqueness constraint is reconciled by deleting the stale rule when a rule for
the target category already exists.

Store failures raise :class:`~finance_ingest.errors.LearningError`. Callers
that learn as a side effect of an edit catch and log it; see
:mod:`finance_ingest.api`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .config import resolve_max_workers
from .errors import LearningError, StoreError, UniqueViolation
from .logging_setup import get_logger
from .models import CategorizationRule, LearningOutcome, PatternMatch
from .normalizers import normalize_merchant
from .pmap import p_map
from .store import RecordStore, eq, ilike

_logger = get_logger("finance_ingest.learning")

_TABLE = "categorization_rules"
_PENALTY = {"exact": 0, "partial": 5, "description": 10}
# Lower rank wins when adjusted confidences tie.
_TIER_RANK = {"exact": 0, "partial": 1, "description": 2}
_REASONS = {
    "exact": 'Learned pattern: exact merchant match "{}"',
    "partial": 'Learned pattern: partial merchant match "{}"',
    "description": 'Learned pattern: description keyword match "{}"',
}


def _merchant_and_description(transaction: Any) -> tuple[str, str | None]:
    if isinstance(transaction, Mapping):
        return transaction.get("merchant") or "", transaction.get("description")
    return getattr(transaction, "merchant", "") or "", getattr(transaction, "description", None)


def _to_rule(row: Mapping[str, Any]) -> CategorizationRule:
    try:
        return CategorizationRule.model_validate(dict(row))
    except ValidationError as exc:
        raise LearningError(f"malformed categorization rule row: {exc}") from exc


def extract_merchant_pattern(merchant: str | None) -> str:
    """Pattern key for ``merchant``; identical to the duplicate-detection key."""

    return normalize_merchant(merchant)


def store_learned_pattern(
    user_id: str,
    pattern: str,
    category_id: str,
    confidence: int = 100,
    *,
    store: RecordStore,
) -> CategorizationRule:
    """Create or repoint the user's rule for ``pattern``.

    - no rule yet: insert one;
    - newest rule already points at ``category_id``: refresh confidence and
      ``updated_at``;
    - newest rule points elsewhere: repoint it, or, when a rule for
      ``category_id`` already exists, delete the stale rule and return the
      existing one.
    """

    if not 0 <= confidence <= 100:
        raise ValueError("confidence must be within [0,100]")
    if not pattern:
        raise LearningError("cannot learn an empty merchant pattern")

    newest = _fetch_newest(user_id, pattern, store=store)

    if newest is None:
        try:
            rows = store.insert(
                _TABLE,
                [
                    {
                        "user_id": user_id,
                        "merchant_pattern": pattern,
                        "category_id": category_id,
                        "confidence": confidence,
                    }
                ],
            )
        except UniqueViolation:
            # A concurrent correction for the same merchant inserted first.
            newest = _fetch_newest(user_id, pattern, store=store)
            if newest is None:
                raise LearningError(
                    f"pattern {pattern!r} conflicted on insert but no rule exists"
                ) from None
            _logger.info(
                "store_learned_pattern:insert_raced user_id=%s pattern=%s existing_id=%s",
                user_id,
                pattern,
                newest["id"],
            )
            return _apply_to_existing(
                user_id, pattern, category_id, confidence, newest, store=store
            )
        except StoreError as exc:
            _logger.error(
                "store_learned_pattern:insert_failed user_id=%s pattern=%s category_id=%s error=%s",
                user_id,
                pattern,
                category_id,
                exc,
            )
            raise LearningError(f"Failed to store learned pattern: {exc}") from exc
        _logger.info(
            "store_learned_pattern:created user_id=%s pattern=%s category_id=%s confidence=%d",
            user_id,
            pattern,
            category_id,
            confidence,
        )
        return _to_rule(rows[0])

    return _apply_to_existing(user_id, pattern, category_id, confidence, newest, store=store)


def _fetch_newest(user_id: str, pattern: str, *, store: RecordStore) -> dict[str, Any] | None:
    try:
        rows = store.select(
            _TABLE,
            [eq("user_id", user_id), eq("merchant_pattern", pattern)],
            columns=("id", "category_id"),
            order_by=("-updated_at",),
            limit=1,
        )
    except StoreError as exc:
        _logger.error(
            "store_learned_pattern:fetch_failed user_id=%s pattern=%s error=%s",
            user_id,
            pattern,
            exc,
        )
        raise LearningError(f"Failed to fetch existing pattern: {exc}") from exc
    return dict(rows[0]) if rows else None


def _apply_to_existing(
    user_id: str,
    pattern: str,
    category_id: str,
    confidence: int,
    existing: Mapping[str, Any],
    *,
    store: RecordStore,
) -> CategorizationRule:
    """Refresh ``existing`` in place, or repoint it at ``category_id``."""

    now = datetime.now(UTC)
    if existing["category_id"] == category_id:
        patch: dict[str, Any] = {"confidence": confidence, "updated_at": now}
    else:
        patch = {"category_id": category_id, "confidence": confidence, "updated_at": now}

    try:
        rows = store.update(_TABLE, [eq("id", existing["id"])], patch)
    except UniqueViolation:
        return _reconcile_conflict(user_id, pattern, category_id, existing["id"], store=store)
    except StoreError as exc:
        _logger.error(
            "store_learned_pattern:update_failed user_id=%s pattern=%s error=%s",
            user_id,
            pattern,
            exc,
        )
        raise LearningError(f"Failed to update pattern: {exc}") from exc

    if not rows:
        raise LearningError(f"pattern {existing['id']} disappeared during update")
    if existing["category_id"] != category_id:
        _logger.info(
            (
                "store_learned_pattern:repointed user_id=%s pattern=%s "
                "old_category_id=%s new_category_id=%s confidence=%d"
            ),
            user_id,
            pattern,
            existing["category_id"],
            category_id,
            confidence,
        )
    return _to_rule(rows[0])


def _reconcile_conflict(
    user_id: str,
    pattern: str,
    category_id: str,
    stale_id: str,
    *,
    store: RecordStore,
) -> CategorizationRule:
    try:
        store.delete(_TABLE, [eq("id", stale_id)])
        rows = store.select(
            _TABLE,
            [
                eq("user_id", user_id),
                eq("merchant_pattern", pattern),
                eq("category_id", category_id),
            ],
            limit=1,
        )
    except StoreError as exc:
        _logger.error(
            "store_learned_pattern:conflict_failed user_id=%s pattern=%s error=%s",
            user_id,
            pattern,
            exc,
        )
        raise LearningError(f"Failed to handle pattern conflict: {exc}") from exc
    if not rows:
        raise LearningError(
            f"pattern conflict for {pattern!r} but no rule exists for category {category_id}"
        )
    _logger.info(
        "store_learned_pattern:reconciled user_id=%s pattern=%s deleted_id=%s kept_id=%s",
        user_id,
        pattern,
        stale_id,
        rows[0]["id"],
    )
    return _to_rule(rows[0])


def _classify(pattern: str, merchant_key: str, description: str | None) -> str | None:
    """Return the match tier of ``pattern`` against a transaction, if any."""

    if not pattern:
        return None
    if pattern == merchant_key:
        return "exact"
    if merchant_key and (pattern in merchant_key or merchant_key in pattern):
        return "partial"
    if description and pattern.lower() in description.lower().strip():
        return "description"
    return None


def find_learned_patterns(
    user_id: str,
    merchant: str | None,
    description: str | None,
    *,
    store: RecordStore,
) -> list[CategorizationRule]:
    """All of the user's rules that match ``merchant`` or ``description``.

    Rules come back ordered by confidence, then recency (both descending).
    """

    merchant_key = extract_merchant_pattern(merchant)
    try:
        rows = store.select(
            _TABLE,
            [eq("user_id", user_id)],
            order_by=("-confidence", "-updated_at"),
        )
    except StoreError as exc:
        _logger.error(
            "find_learned_patterns:query_failed user_id=%s merchant=%s error=%s",
            user_id,
            merchant,
            exc,
        )
        raise LearningError(f"Failed to find learned patterns: {exc}") from exc

    rules = [_to_rule(r) for r in rows]
    return [
        r
        for r in rules
        if _classify(extract_merchant_pattern(r.merchant_pattern), merchant_key, description)
        is not None
    ]


def match_learned_pattern(
    transaction: Any, learned_patterns: Sequence[CategorizationRule]
) -> PatternMatch | None:
    """Pick the best learned rule for ``transaction``.

    Exact merchant matches keep the rule's confidence, partial (containment
    either way) matches lose 5, description matches lose 10; floors at 0.
    Highest adjusted confidence wins, ties go to the stronger tier and then
    to the earlier rule. A rule whose adjusted confidence is 0 never wins.
    """

    if not learned_patterns:
        return None

    merchant, description = _merchant_and_description(transaction)
    merchant_key = extract_merchant_pattern(merchant)

    best: tuple[int, int] | None = None
    best_match: PatternMatch | None = None
    for rule in learned_patterns:
        tier = _classify(extract_merchant_pattern(rule.merchant_pattern), merchant_key, description)
        if tier is None:
            continue
        adjusted = max(rule.confidence - _PENALTY[tier], 0)
        if adjusted == 0:
            continue
        key = (adjusted, -_TIER_RANK[tier])
        if best is None or key > best:
            best = key
            best_match = PatternMatch(
                category_id=rule.category_id,
                confidence=adjusted,
                match_reason=_REASONS[tier].format(rule.merchant_pattern),
                match_type=tier,  # type: ignore[arg-type]
                rule=rule,
            )
    return best_match


def learn_from_correction(
    user_id: str,
    transaction: Any,
    category_id: str,
    *,
    store: RecordStore,
) -> CategorizationRule:
    """Record that the user filed ``transaction``'s merchant under ``category_id``."""

    merchant, _ = _merchant_and_description(transaction)
    return store_learned_pattern(
        user_id, extract_merchant_pattern(merchant), category_id, 100, store=store
    )


def learn_from_corrections(
    user_id: str,
    transactions: Sequence[Any],
    category_id: str,
    *,
    store: RecordStore,
    concurrency: int | None = None,
) -> LearningOutcome:
    """Best-effort bulk learning; failures are logged and counted, never raised."""

    if not transactions:
        return LearningOutcome()

    def _learn(tx: Any) -> CategorizationRule | None:
        try:
            return learn_from_correction(user_id, tx, category_id, store=store)
        except (LearningError, ValueError) as exc:
            merchant, _ = _merchant_and_description(tx)
            _logger.warning(
                "learn_from_corrections:item_failed user_id=%s merchant=%s category_id=%s error=%s",
                user_id,
                merchant,
                category_id,
                exc,
            )
            return None

    workers = resolve_max_workers(concurrency, n_items=len(transactions))
    results = p_map(transactions, _learn, concurrency=workers)
    learned = tuple(r for r in results if r is not None)
    failed = len(results) - len(learned)
    _logger.info(
        "learn_from_corrections:done user_id=%s category_id=%s learned=%d failed=%d",
        user_id,
        category_id,
        len(learned),
        failed,
    )
    return LearningOutcome(learned=learned, failed=failed)


def list_learned_patterns(
    user_id: str,
    *,
    store: RecordStore,
    category_id: str | None = None,
    merchant_pattern: str | None = None,
) -> list[CategorizationRule]:
    """The user's rules, newest first.

    ``merchant_pattern`` filters by case-insensitive substring.
    """

    filters = [eq("user_id", user_id)]
    if category_id:
        filters.append(eq("category_id", category_id))
    if merchant_pattern:
        filters.append(ilike("merchant_pattern", f"%{merchant_pattern.strip()}%"))
    try:
        rows = store.select(_TABLE, filters, order_by=("-updated_at",))
    except StoreError as exc:
        _logger.error("list_learned_patterns:query_failed user_id=%s error=%s", user_id, exc)
        raise LearningError(f"Failed to fetch learned patterns: {exc}") from exc
    return [_to_rule(r) for r in rows]


__all__ = [
    "extract_merchant_pattern",
    "store_learned_pattern",
    "find_learned_patterns",
    "match_learned_pattern",
    "learn_from_correction",
    "learn_from_corrections",
    "list_learned_patterns",
]
