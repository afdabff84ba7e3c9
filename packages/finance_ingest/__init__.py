"""Public interface for the ``finance_ingest`` package.

Symbol re-exports only; see the individual modules for behavior.
"""

from .api import (
    bulk_update_category,
    categorization_statistics,
    import_csv,
    load_categories,
    update_transaction_category,
)
from .categorize import categorize_transaction, categorize_transactions
from .duplicates import create_duplicate_hash, filter_duplicates, find_duplicates
from .errors import (
    CategoryNotFound,
    DuplicateCheckError,
    FinanceIngestError,
    InvalidAmount,
    InvalidDate,
    LearningError,
    StoreError,
    TransactionNotFound,
    UniqueViolation,
)
from .learning import (
    extract_merchant_pattern,
    find_learned_patterns,
    learn_from_correction,
    learn_from_corrections,
    list_learned_patterns,
    match_learned_pattern,
    store_learned_pattern,
)
from .models import (
    CategorizationResult,
    CategorizationRule,
    CategorizationStatistics,
    Category,
    ImportSummary,
    ParsedTransaction,
    ParseError,
    ParseResult,
)
from .normalizers import normalize_merchant
from .parsers import (
    detect_bank_format,
    extract_merchant,
    find_column_index,
    get_bank_format,
    normalize_amount,
    normalize_date,
    parse_csv,
)
from .store import RecordStore, SqlAlchemyRecordStore

__all__ = [
    # Parsing
    "normalize_amount",
    "normalize_date",
    "extract_merchant",
    "detect_bank_format",
    "get_bank_format",
    "find_column_index",
    "parse_csv",
    # Duplicates
    "normalize_merchant",
    "create_duplicate_hash",
    "find_duplicates",
    "filter_duplicates",
    # Categorization and learning
    "categorize_transaction",
    "categorize_transactions",
    "extract_merchant_pattern",
    "store_learned_pattern",
    "find_learned_patterns",
    "match_learned_pattern",
    "learn_from_correction",
    "learn_from_corrections",
    "list_learned_patterns",
    # Orchestration
    "import_csv",
    "load_categories",
    "update_transaction_category",
    "bulk_update_category",
    "categorization_statistics",
    # Store
    "RecordStore",
    "SqlAlchemyRecordStore",
    # Models
    "ParsedTransaction",
    "ParseError",
    "ParseResult",
    "Category",
    "CategorizationRule",
    "CategorizationResult",
    "CategorizationStatistics",
    "ImportSummary",
    # Errors
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
