"""Exception types raised by ``finance_ingest``.

Parse problems inside a CSV batch are never raised; they are collected as
:class:`finance_ingest.models.ParseError` records. The exceptions here cover
single-value normalization (callers that want fail-fast behavior) and store
round-trips.
"""

from __future__ import annotations


class FinanceIngestError(Exception):
    """Base class for all package errors."""


class InvalidAmount(FinanceIngestError, ValueError):
    """An amount string could not be parsed into cents."""


class InvalidDate(FinanceIngestError, ValueError):
    """A date string matched none of the supported formats."""


class StoreError(FinanceIngestError):
    """A record-store round-trip failed."""


class UniqueViolation(StoreError):
    """A write violated a uniqueness constraint."""


class DuplicateCheckError(FinanceIngestError):
    """Existing transactions could not be fetched for duplicate detection."""


class LearningError(FinanceIngestError):
    """A learned categorization pattern could not be read or written."""


class TransactionNotFound(FinanceIngestError, LookupError):
    """A transaction id does not exist for the requesting user."""


class CategoryNotFound(FinanceIngestError, LookupError):
    """A category id does not exist for the requesting user."""


__all__ = [
    "FinanceIngestError",
    "InvalidAmount",
    "InvalidDate",
    "StoreError",
    "UniqueViolation",
    "DuplicateCheckError",
    "LearningError",
    "TransactionNotFound",
    "CategoryNotFound",
]
