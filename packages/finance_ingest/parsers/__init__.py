"""CSV ingestion: value normalizers, bank format detection, and the row parser."""

from .amounts import is_valid_amount, normalize_amount
from .bank_formats import (
    BANK_FORMATS,
    BankFormatConfig,
    detect_bank_format,
    find_column_index,
    get_bank_format,
)
from .csv_parser import parse_csv
from .dates import is_valid_date, normalize_date
from .merchants import extract_merchant

__all__ = [
    "normalize_amount",
    "is_valid_amount",
    "normalize_date",
    "is_valid_date",
    "extract_merchant",
    "BANK_FORMATS",
    "BankFormatConfig",
    "detect_bank_format",
    "get_bank_format",
    "find_column_index",
    "parse_csv",
]
