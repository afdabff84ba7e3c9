"""Merchant/text keys shared by duplicate detection, learning, and static rules.

``normalize_merchant`` is the single merchant key used by both
:mod:`finance_ingest.duplicates` and :mod:`finance_ingest.learning`; any change
here changes which transactions count as duplicates *and* which learned
patterns apply, so the two stay consistent.
"""

from __future__ import annotations

import re

_WS_RE = re.compile(r"\s+")
_LEADING_THE_RE = re.compile(r"^the\s+", re.IGNORECASE)
_INC_RE = re.compile(r"\s+inc\.?$", re.IGNORECASE)
_LLC_RE = re.compile(r"\s+llc\.?$", re.IGNORECASE)
_CORP_RE = re.compile(r"\s+corp\.?$", re.IGNORECASE)


def normalize_merchant(merchant: str | None) -> str:
    """Lower-case, trim, collapse whitespace, drop "the " and entity suffixes.

    >>> normalize_merchant("  The  Coffee   Bean Inc. ")
    'coffee bean'
    """

    if not merchant:
        return ""
    s = _WS_RE.sub(" ", merchant.lower().strip())
    s = _LEADING_THE_RE.sub("", s)
    s = _INC_RE.sub("", s)
    s = _LLC_RE.sub("", s)
    s = _CORP_RE.sub("", s)
    return s.strip()


def normalize_text(text: str | None) -> str:
    """Upper-case, trim, and collapse whitespace (static rule matching key)."""

    if not text:
        return ""
    return _WS_RE.sub(" ", text.upper().strip())


__all__ = ["normalize_merchant", "normalize_text"]
