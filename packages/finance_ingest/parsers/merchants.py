"""Heuristic merchant-name extraction from free-text bank descriptions.

Bank exports put the merchant in different places:

- at the start: ``"STARBUCKS STORE #1234"``
- after a verb: ``"Purchase at AMAZON.COM"``
- after a card-network marker: ``"POS DEBIT SHELL OIL 123456"``
- as a domain: ``"NETFLIX.COM 866-579-7172"``

The patterns below are tried in order and the first capture wins. Their
character classes are deliberately narrow (letters, digits, spaces, ``&``),
so descriptions with other punctuation fall through to a prefix/suffix
cleanup instead.
"""

from __future__ import annotations

import re

UNKNOWN_MERCHANT = "Unknown"
MAX_MERCHANT_LENGTH = 255

_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Leading name ending at a store number, long reference, or card marker.
    re.compile(r"^([A-Z0-9\s&]+?)(?:\s+#\d+|\s+\d{4,}|\s+POS|\s+DEBIT|\s+CREDIT|$)", re.I),
    re.compile(r"(?:Purchase|Transaction|Payment)\s+at\s+([A-Z0-9\s&.]+)", re.I),
    re.compile(r"POS\s+(?:DEBIT|CREDIT)\s+([A-Z0-9\s&.]+)", re.I),
    re.compile(r"([A-Z0-9\s&.]+\.(?:COM|NET|ORG|IO))\s*", re.I),
    # Upper-case name followed by a reference number or "ST 12345" location.
    re.compile(r"^([A-Z][A-Z0-9\s&]+?)(?:\s+\d{4,}|\s+[A-Z]{2}\s+\d{5}|\s*$)"),
)

_PREFIX_RE = re.compile(r"^(POS\s+)?(DEBIT|CREDIT|PURCHASE|TRANSACTION|PAYMENT)\s+", re.I)
_SUFFIX_RE = re.compile(r"\s+(POS|DEBIT|CREDIT|PURCHASE|TRANSACTION|PAYMENT)$", re.I)
_SEPARATORS: tuple[str, ...] = ("  ", " - ", " #", " REF", " ID")
_WS_RE = re.compile(r"\s+")


def _clean(name: str) -> str:
    return _WS_RE.sub(" ", name.strip())[:MAX_MERCHANT_LENGTH]


def extract_merchant(description: str | None) -> str:
    """Return a short merchant name for ``description``.

    >>> extract_merchant("STARBUCKS STORE #1234")
    'STARBUCKS STORE'
    >>> extract_merchant(None)
    'Unknown'
    """

    if not description or not isinstance(description, str):
        return UNKNOWN_MERCHANT
    trimmed = description.strip()
    if not trimmed:
        return UNKNOWN_MERCHANT

    for pattern in _PATTERNS:
        m = pattern.search(trimmed)
        if m and m.group(1):
            candidate = _clean(m.group(1))
            if candidate:
                return candidate

    cleaned = _SUFFIX_RE.sub("", _PREFIX_RE.sub("", trimmed)).strip()
    for sep in _SEPARATORS:
        idx = cleaned.find(sep)
        if idx > 0:
            cleaned = cleaned[:idx]

    return _clean(cleaned or trimmed)


__all__ = ["UNKNOWN_MERCHANT", "MAX_MERCHANT_LENGTH", "extract_merchant"]
