"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ingestion/categorization models used by
``finance_ingest``.
"""

from .finance import Base, CategorizationRule, Category, Transaction

__all__ = [
    "Base",
    "Category",
    "Transaction",
    "CategorizationRule",
]
