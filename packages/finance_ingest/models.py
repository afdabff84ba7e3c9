"""Data models and type aliases for ``finance_ingest``.

Records produced by pure computation (parsing, duplicate checks, rule
matching) are frozen dataclasses. Shapes that arrive from outside the package
(store rows, caller-supplied category catalogs and batch items) are pydantic
models so malformed input fails loudly at the boundary.

``to_payload()`` helpers render the camelCase contract handed back to the
calling layer (route handlers in the host application).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

type TransactionType = Literal["debit", "credit"]
type MatchSource = Literal["learned", "default"]
type DuplicateHash = str
"""``"<YYYY-MM-DD>|<amount_cents>|<normalized merchant>"``."""

type TransactionRecord = Mapping[str, Any]
"""A transaction as a plain mapping (store rows, insert payloads).

Keys follow the ``transactions`` table: ``date``, ``amount_cents``,
``merchant``, ``description``, ``transaction_type`` and optionally ``id``,
``category_id``, ``confidence``, ``is_duplicate``.
"""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedAmount:
    amount_cents: int
    transaction_type: TransactionType


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A single normalized transaction produced by the CSV parser.

    ``amount_cents`` is always the magnitude; direction is carried by
    ``transaction_type``.
    """

    date: str
    amount_cents: int
    merchant: str
    description: str | None
    transaction_type: TransactionType

    def __post_init__(self) -> None:
        if isinstance(self.amount_cents, bool) or self.amount_cents < 0:
            raise ValueError("ParsedTransaction.amount_cents must be a non-negative integer")
        if self.transaction_type not in ("debit", "credit"):
            raise ValueError(f"invalid transaction_type: {self.transaction_type!r}")

    def as_record(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "amount_cents": self.amount_cents,
            "merchant": self.merchant,
            "description": self.description,
            "transaction_type": self.transaction_type,
        }


@dataclass(frozen=True, slots=True)
class ParseError:
    """A row-level (or file-level, ``row == 0``) parse problem."""

    row: int
    message: str
    column: str | None = None
    original_row: Mapping[str, str] | None = None

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {"row": self.row, "message": self.message}
        if self.column is not None:
            out["column"] = self.column
        if self.original_row is not None:
            out["originalRow"] = dict(self.original_row)
        return out


@dataclass(slots=True)
class ParseResult:
    transactions: list[ParsedTransaction]
    errors: list[ParseError]
    total_rows: int
    detected_format: str = "generic"

    @property
    def success_count(self) -> int:
        return len(self.transactions)

    @property
    def error_count(self) -> int:
        # Header errors count once each, not once per data row.
        return len(self.errors)

    def to_payload(self) -> dict[str, Any]:
        return {
            "transactions": [t.as_record() for t in self.transactions],
            "errors": [e.to_payload() for e in self.errors],
            "totalRows": self.total_rows,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "detectedFormat": self.detected_format,
        }


# ---------------------------------------------------------------------------
# Duplicate detection
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    transaction: TransactionRecord
    existing_transaction_id: str
    duplicate_hash: DuplicateHash


@dataclass(frozen=True, slots=True)
class DuplicateReport:
    duplicates: tuple[DuplicateMatch, ...] = ()
    duplicate_hashes: frozenset[DuplicateHash] = frozenset()


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------


class Category(BaseModel):
    """A user-owned category as supplied by the caller's catalog."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    id: str
    name: str


class CategorizeItem(BaseModel):
    """One input to batch categorization."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    merchant: str = ""
    description: str | None = None

    @field_validator("merchant", mode="before")
    @classmethod
    def _merchant_none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class CategorizationRule(BaseModel):
    """A learned merchant→category pattern as stored in ``categorization_rules``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    merchant_pattern: str
    category_id: str
    confidence: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("confidence")
    @classmethod
    def _confidence_in_range(cls, v: int) -> int:
        if 0 <= v <= 100:
            return v
        raise ValueError("confidence must be within [0,100]")


@dataclass(frozen=True, slots=True)
class PatternMatch:
    category_id: str
    confidence: int
    match_reason: str
    match_type: Literal["exact", "partial", "description"]
    rule: CategorizationRule


@dataclass(frozen=True, slots=True)
class CategorizationResult:
    category_id: str | None
    confidence: int
    match_reason: str
    match_source: MatchSource = "default"
    transaction_id: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError("CategorizationResult.confidence must be within [0,100]")
        if (self.category_id is None) != (self.confidence == 0):
            raise ValueError("category_id must be None exactly when confidence is 0")

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "category_id": self.category_id,
            "confidence": self.confidence,
            "matchReason": self.match_reason,
            "matchSource": self.match_source,
        }
        if self.transaction_id is not None:
            out["transactionId"] = self.transaction_id
        return out


@dataclass(frozen=True, slots=True)
class LearningOutcome:
    """Result of best-effort bulk learning."""

    learned: tuple[CategorizationRule, ...] = ()
    failed: int = 0


# ---------------------------------------------------------------------------
# Import pipeline and statistics
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ImportSummary:
    parse_result: ParseResult
    duplicates: tuple[DuplicateMatch, ...]
    stored: list[dict[str, Any]]
    skip_duplicates: bool
    categorized_count: int = 0
    uncategorized_count: int = 0
    average_confidence: float = 0.0
    min_date: str | None = None
    max_date: str | None = None

    @property
    def stored_count(self) -> int:
        return len(self.stored)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    def to_payload(self) -> dict[str, Any]:
        pr = self.parse_result
        return {
            "transactions": self.stored,
            "duplicates": [
                {
                    "transaction": dict(d.transaction),
                    "existingTransactionId": d.existing_transaction_id,
                }
                for d in self.duplicates
            ],
            "duplicateCount": self.duplicate_count,
            "errors": [e.to_payload() for e in pr.errors],
            "summary": {
                "totalRows": pr.total_rows,
                "successCount": pr.success_count,
                "errorCount": pr.error_count,
                "storedCount": self.stored_count,
                "duplicateCount": self.duplicate_count,
            },
            "categorizationSummary": {
                "categorized": self.categorized_count,
                "uncategorized": self.uncategorized_count,
                "averageConfidence": self.average_confidence,
            },
            "dateRange": {"minDate": self.min_date, "maxDate": self.max_date},
            "detectedFormat": pr.detected_format,
        }


@dataclass(slots=True)
class BulkUpdateResult:
    updated: list[dict[str, Any]]
    learning: LearningOutcome = field(default_factory=LearningOutcome)

    @property
    def updated_count(self) -> int:
        return len(self.updated)


@dataclass(frozen=True, slots=True)
class CategoryCount:
    category_id: str
    category_name: str
    count: int


@dataclass(frozen=True, slots=True)
class CategorizationStatistics:
    total: int
    categorized: int
    uncategorized: int
    average_confidence: float
    distribution: tuple[CategoryCount, ...] = field(default_factory=tuple)


def coerce_categories(categories: Sequence[Category | Mapping[str, Any]]) -> list[Category]:
    """Validate a caller-supplied catalog into :class:`Category` models."""

    return [c if isinstance(c, Category) else Category.model_validate(dict(c)) for c in categories]


__all__ = [
    "TransactionType",
    "MatchSource",
    "DuplicateHash",
    "TransactionRecord",
    "NormalizedAmount",
    "ParsedTransaction",
    "ParseError",
    "ParseResult",
    "DuplicateMatch",
    "DuplicateReport",
    "Category",
    "CategorizeItem",
    "CategorizationRule",
    "PatternMatch",
    "CategorizationResult",
    "LearningOutcome",
    "ImportSummary",
    "BulkUpdateResult",
    "CategoryCount",
    "CategorizationStatistics",
    "coerce_categories",
]
