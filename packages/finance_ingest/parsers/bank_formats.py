"""Bank CSV dialects and header-based format detection.

Each :class:`BankFormatConfig` lists, per semantic field, the header names a
bank is known to use (matched case-insensitively and exactly), plus header
keywords that hint at the bank (matched as substrings). Detection scores every
config against the header row and picks the best; the generic config doubles
as the fallback when nothing scores.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

type Field = Literal["date", "amount", "description", "type"]

GENERIC_FORMAT = "generic"

_EXACT_MATCH_SCORE = 2
_KEYWORD_MATCH_SCORE = 3


@dataclass(frozen=True, slots=True)
class BankFormatConfig:
    name: str
    display_name: str
    date: tuple[str, ...]
    amount: tuple[str, ...]
    description: tuple[str, ...]
    type: tuple[str, ...] = ()
    header_keywords: tuple[str, ...] = ()

    def candidates(self, field: Field) -> tuple[str, ...]:
        return getattr(self, field)

    def all_candidates(self) -> tuple[str, ...]:
        return self.date + self.amount + self.description + self.type


BANK_FORMATS: tuple[BankFormatConfig, ...] = (
    BankFormatConfig(
        name="chase",
        display_name="Chase",
        date=("Transaction Date", "Date", "Posting Date"),
        amount=("Amount", "Transaction Amount"),
        description=("Description", "Transaction Description", "Details"),
        type=("Type", "Transaction Type"),
        header_keywords=("Transaction Date", "Description", "Amount"),
    ),
    BankFormatConfig(
        name="bofa",
        display_name="Bank of America",
        date=("Date", "Posted Date", "Transaction Date"),
        amount=("Amount", "Transaction Amount"),
        description=("Description", "Payee", "Merchant"),
        type=("Type", "Transaction Type"),
        header_keywords=("Date", "Description", "Amount"),
    ),
    BankFormatConfig(
        name="wells-fargo",
        display_name="Wells Fargo",
        date=("Date", "Post Date", "Transaction Date"),
        amount=("Amount", "Transaction Amount"),
        description=("Description", "Merchant", "Payee"),
        type=("Type", "Transaction Type"),
        header_keywords=("Date", "Description", "Amount"),
    ),
    BankFormatConfig(
        name=GENERIC_FORMAT,
        display_name="Generic CSV",
        date=("Date", "Transaction Date", "Post Date", "Posted Date", "Posting Date"),
        amount=("Amount", "Transaction Amount", "Value", "Total"),
        description=("Description", "Merchant", "Payee", "Vendor", "Store", "Details", "Memo"),
        type=("Type", "Transaction Type", "Category"),
    ),
)

_BY_NAME: dict[str, BankFormatConfig] = {f.name: f for f in BANK_FORMATS}


def _normalize_headers(headers: Sequence[str]) -> list[str]:
    return [(h or "").strip().lower() for h in headers]


def score_format(headers: Sequence[str], config: BankFormatConfig) -> int:
    """Score how well ``headers`` fit ``config`` (0 means no evidence)."""

    normalized = _normalize_headers(headers)
    header_set = set(normalized)
    score = 0
    for name in config.all_candidates():
        if name.lower() in header_set:
            score += _EXACT_MATCH_SCORE
    for keyword in config.header_keywords:
        kw = keyword.lower()
        if any(kw in h for h in normalized):
            score += _KEYWORD_MATCH_SCORE
    return score


def detect_bank_format(headers: Sequence[str]) -> str:
    """Return the best-matching format name for a CSV header row.

    Ties keep declaration order; a zero best score (or an empty header)
    yields ``"generic"``.
    """

    if not headers:
        return GENERIC_FORMAT

    best_name, best_score = GENERIC_FORMAT, 0
    for config in BANK_FORMATS:
        score = score_format(headers, config)
        if score > best_score:
            best_name, best_score = config.name, score
    return best_name


def get_bank_format(name: str) -> BankFormatConfig:
    """Return the config named ``name``, or the generic config when unknown."""

    return _BY_NAME.get(name, _BY_NAME[GENERIC_FORMAT])


def find_column_index(headers: Sequence[str], config: BankFormatConfig, field: Field) -> int:
    """Index of the first header matching any candidate for ``field``, else -1.

    Candidates are tried in the config's order, so an earlier candidate wins
    even when a later one appears further left in the header row.
    """

    normalized = _normalize_headers(headers)
    for name in config.candidates(field):
        try:
            return normalized.index(name.lower())
        except ValueError:
            continue
    return -1


__all__ = [
    "GENERIC_FORMAT",
    "BankFormatConfig",
    "BANK_FORMATS",
    "score_format",
    "detect_bank_format",
    "get_bank_format",
    "find_column_index",
]
