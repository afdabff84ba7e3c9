"""Amount normalization: heterogeneous bank amount strings → integer cents.

Handles currency symbols, thousands separators, embedded whitespace, a
leading minus sign, and the accounting convention of wrapping negative
amounts in parentheses. Parsing goes through :class:`~decimal.Decimal` so
``"0.29"`` becomes exactly 29 cents rather than a float approximation.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..errors import InvalidAmount
from ..models import NormalizedAmount

_STRIP_RE = re.compile(r"[$€£¥₹,()\s]")


def _to_signed_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmount("Amount must be a string or number")
    if isinstance(value, Decimal):
        raw = value
    elif isinstance(value, int | float):
        # repr() of a float is the shortest round-tripping form ("0.1", not
        # 0.1000000000000000055...).
        raw = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            raise InvalidAmount("Amount string cannot be empty")
        parenthesized = s.startswith("(") and s.endswith(")")
        cleaned = _STRIP_RE.sub("", s)
        negative = parenthesized
        if cleaned.startswith("-"):
            negative = True
            cleaned = cleaned[1:]
        elif cleaned.startswith("+"):
            cleaned = cleaned[1:]
        try:
            magnitude = Decimal(cleaned)
        except InvalidOperation as exc:
            raise InvalidAmount(f'Unable to parse amount: "{value}"') from exc
        if not magnitude.is_finite() or magnitude.is_signed():
            raise InvalidAmount(f'Unable to parse amount: "{value}"')
        return -magnitude if negative else magnitude
    else:
        raise InvalidAmount("Amount must be a string or number")

    if not raw.is_finite():
        raise InvalidAmount(f'Unable to parse amount: "{value}"')
    return raw


def normalize_amount(value: str | int | float | Decimal) -> NormalizedAmount:
    """Parse ``value`` into unsigned cents plus a debit/credit direction.

    >>> normalize_amount("$1,234.56")
    NormalizedAmount(amount_cents=123456, transaction_type='credit')
    >>> normalize_amount("(50.00)")
    NormalizedAmount(amount_cents=5000, transaction_type='debit')

    Raises :class:`~finance_ingest.errors.InvalidAmount` for empty or
    unparseable input.
    """

    signed = _to_signed_decimal(value)
    cents = int((abs(signed) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    negative = signed < 0 and cents > 0
    return NormalizedAmount(
        amount_cents=cents,
        transaction_type="debit" if negative else "credit",
    )


def is_valid_amount(value: str | int | float | Decimal) -> bool:
    try:
        normalize_amount(value)
    except InvalidAmount:
        return False
    return True


__all__ = ["normalize_amount", "is_valid_amount"]
