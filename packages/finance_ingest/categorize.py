"""Layered rule-based categorization.

Matching order (first usable match wins):

1. learned patterns for the user (needs ``user_id`` and a ``store``); a
   winning rule is only used when its category is in the caller's catalog;
2. exact built-in merchant match, confidence 100;
3. built-in keyword group found in the merchant, group confidence;
4. built-in keyword group found in the description, group confidence - 10;
5. no match: ``category_id=None``, confidence 0.

Built-in rules resolve their category by name against the caller's catalog
(case-insensitive); the engine never fetches categories itself.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any

from .config import resolve_max_workers
from .learning import find_learned_patterns, match_learned_pattern
from .logging_setup import get_logger
from .models import CategorizationResult, Category, CategorizeItem, coerce_categories
from .normalizers import normalize_text
from .pmap import p_map
from .rules import DEFAULT_KEYWORD_RULES, DEFAULT_MERCHANT_RULES, StaticRule
from .store import RecordStore

_logger = get_logger("finance_ingest.categorize")

NO_MERCHANT_REASON = "No merchant name provided"
NO_MATCH_REASON = "No matching rule found"
_DESCRIPTION_PENALTY = 10


def _coerce_item(transaction: Any) -> CategorizeItem:
    if isinstance(transaction, CategorizeItem):
        return transaction
    if isinstance(transaction, Mapping):
        return CategorizeItem.model_validate(dict(transaction))
    return CategorizeItem(
        id=getattr(transaction, "id", None),
        merchant=getattr(transaction, "merchant", "") or "",
        description=getattr(transaction, "description", None),
    )


def _by_name(categories: Sequence[Category]) -> dict[str, Category]:
    out: dict[str, Category] = {}
    for cat in categories:
        out.setdefault(normalize_text(cat.name), cat)
    return out


def _first_keyword(text: str, rule: StaticRule) -> str | None:
    for kw in rule.keywords:
        if normalize_text(kw) in text:
            return kw
    return None


def _match_keywords(
    text: str, by_name: Mapping[str, Category], *, source: str, penalty: int
) -> CategorizationResult | None:
    for rule in DEFAULT_KEYWORD_RULES:
        keyword = _first_keyword(text, rule)
        if keyword is None:
            continue
        category = by_name.get(normalize_text(rule.category_name))
        if category is None:
            continue
        return CategorizationResult(
            category_id=category.id,
            confidence=max(rule.confidence - penalty, 0),
            match_reason=f'{source} keyword match: "{keyword}" → {rule.category_name}',
        )
    return None


def _match_learned(
    item: CategorizeItem,
    categories: Sequence[Category],
    user_id: str,
    store: RecordStore,
) -> CategorizationResult | None:
    try:
        candidates = find_learned_patterns(user_id, item.merchant, item.description, store=store)
    except Exception as exc:  # noqa: BLE001
        _logger.warning(
            "categorize_transaction:learned_lookup_failed user_id=%s merchant=%s error=%s: %s",
            user_id,
            item.merchant,
            type(exc).__name__,
            exc,
        )
        return None

    match = match_learned_pattern(item, candidates)
    if match is None:
        return None
    if not any(c.id == match.category_id for c in categories):
        _logger.debug(
            "categorize_transaction:learned_category_unknown user_id=%s category_id=%s",
            user_id,
            match.category_id,
        )
        return None
    return CategorizationResult(
        category_id=match.category_id,
        confidence=match.confidence,
        match_reason=match.match_reason,
        match_source="learned",
    )


def _categorize(
    item: CategorizeItem,
    categories: Sequence[Category],
    by_name: Mapping[str, Category],
    user_id: str | None,
    store: RecordStore | None,
) -> CategorizationResult:
    merchant = item.merchant or ""
    description = item.description or ""

    if not merchant.strip():
        return CategorizationResult(category_id=None, confidence=0, match_reason=NO_MERCHANT_REASON)

    if user_id and store is not None:
        learned = _match_learned(item, categories, user_id, store)
        if learned is not None:
            return learned

    merchant_text = normalize_text(merchant)
    for rule in DEFAULT_MERCHANT_RULES:
        if rule.merchant_pattern is None or normalize_text(rule.merchant_pattern) != merchant_text:
            continue
        category = by_name.get(normalize_text(rule.category_name))
        if category is not None:
            return CategorizationResult(
                category_id=category.id,
                confidence=rule.confidence,
                match_reason=(
                    f'Exact merchant match: "{rule.merchant_pattern}" → {rule.category_name}'
                ),
            )

    result = _match_keywords(merchant_text, by_name, source="Merchant", penalty=0)
    if result is not None:
        return result

    if description.strip():
        result = _match_keywords(
            normalize_text(description),
            by_name,
            source="Description",
            penalty=_DESCRIPTION_PENALTY,
        )
        if result is not None:
            return result

    return CategorizationResult(category_id=None, confidence=0, match_reason=NO_MATCH_REASON)


def categorize_transaction(
    transaction: Any,
    categories: Sequence[Category | Mapping[str, Any]],
    user_id: str | None = None,
    *,
    store: RecordStore | None = None,
) -> CategorizationResult:
    """Categorize one ``{merchant, description}`` transaction.

    ``transaction`` may be a mapping, a :class:`CategorizeItem`, or any object
    with ``merchant``/``description`` attributes. Learned patterns are only
    consulted when both ``user_id`` and ``store`` are given; a failing lookup
    is logged and the built-in rules are used instead.
    """

    cats = coerce_categories(categories)
    return _categorize(_coerce_item(transaction), cats, _by_name(cats), user_id, store)


def categorize_transactions(
    items: Sequence[Any],
    categories: Sequence[Category | Mapping[str, Any]],
    user_id: str | None = None,
    *,
    store: RecordStore | None = None,
    concurrency: int | None = None,
) -> list[CategorizationResult]:
    """Categorize a batch, preserving input order.

    Each result carries the input item's ``id`` as ``transaction_id``. When
    learned patterns are in play the per-item store lookups run on a bounded
    thread pool.
    """

    if not items:
        return []

    cats = coerce_categories(categories)
    by_name = _by_name(cats)
    coerced = [_coerce_item(i) for i in items]

    def _one(item: CategorizeItem) -> CategorizationResult:
        result = _categorize(item, cats, by_name, user_id, store)
        return dataclasses.replace(result, transaction_id=item.id)

    if user_id and store is not None:
        workers = resolve_max_workers(concurrency, n_items=len(coerced))
        results = p_map(coerced, _one, concurrency=workers)
    else:
        results = [_one(i) for i in coerced]

    _logger.info(
        "categorize_transactions:done user_id=%s count=%d categorized=%d",
        user_id,
        len(results),
        sum(1 for r in results if r.category_id is not None),
    )
    return results


__all__ = [
    "NO_MERCHANT_REASON",
    "NO_MATCH_REASON",
    "categorize_transaction",
    "categorize_transactions",
]
