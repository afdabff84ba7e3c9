"""Fault-tolerant CSV parsing into :class:`~finance_ingest.models.ParsedTransaction`.

Contract
--------
- The first non-empty row is the header; blank rows are skipped everywhere and
  do not count towards row numbers.
- Row numbers are 1-based with the header as row 1, so the first data row is
  row 2.
- Missing ``date``/``amount``/``description`` columns are fatal to the batch:
  one :class:`~finance_ingest.models.ParseError` per missing column and no
  row is attempted.
- Every other problem is row-local. The error is recorded with the failing
  column header and the original row, and parsing moves on.

``file_name`` is only used for log context; format detection looks at headers.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence

from ..errors import InvalidAmount, InvalidDate
from ..logging_setup import get_logger
from ..models import ParsedTransaction, ParseError, ParseResult, TransactionType
from .amounts import normalize_amount
from .bank_formats import GENERIC_FORMAT, detect_bank_format, find_column_index, get_bank_format
from .dates import normalize_date
from .merchants import extract_merchant

_logger = get_logger("finance_ingest.parsers.csv_parser")

_DEBIT_MARKERS: tuple[str, ...] = ("debit", "withdrawal")


def _decode(content: str | bytes) -> str:
    if isinstance(content, bytes):
        # utf-8-sig drops a leading BOM written by spreadsheet exports.
        return content.decode("utf-8-sig")
    return content.removeprefix("\ufeff")


def _read_rows(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text, newline=""))
    return [row for row in reader if any(cell.strip() for cell in row)]


def _cell(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return (row[index] or "").strip()


def _original_row(headers: Sequence[str], row: Sequence[str]) -> dict[str, str]:
    return {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers)}


def _type_from_column(value: str) -> TransactionType:
    lowered = value.lower()
    return "debit" if any(marker in lowered for marker in _DEBIT_MARKERS) else "credit"


def _file_error(message: str) -> ParseResult:
    return ParseResult(
        transactions=[],
        errors=[ParseError(row=0, message=message)],
        total_rows=0,
        detected_format=GENERIC_FORMAT,
    )


def parse_csv(content: str | bytes, file_name: str | None = None) -> ParseResult:
    """Parse a bank CSV export.

    Never raises for bad data; every problem is reported in
    :attr:`ParseResult.errors`. ``total_rows`` counts non-empty rows including
    the header.
    """

    try:
        text = _decode(content)
    except UnicodeDecodeError as exc:
        _logger.warning("parse_csv:decode_failed file=%s error=%s", file_name, exc)
        return _file_error(f"CSV file is not valid UTF-8: {exc.reason}")

    if not text.strip():
        return _file_error("CSV file is empty")

    try:
        rows = _read_rows(text)
    except csv.Error as exc:
        _logger.warning("parse_csv:read_failed file=%s error=%s", file_name, exc)
        return _file_error(f"CSV parsing error: {exc}")

    if not rows:
        return _file_error("CSV file contains no data rows")

    headers = [h.strip() for h in rows[0]]
    data_rows = rows[1:]
    total_rows = len(rows)

    detected = detect_bank_format(headers)
    fmt = get_bank_format(detected)
    _logger.info(
        "parse_csv:format_detected format=%s display_name=%s file=%s headers=%s",
        detected,
        fmt.display_name,
        file_name,
        headers,
    )

    date_idx = find_column_index(headers, fmt, "date")
    amount_idx = find_column_index(headers, fmt, "amount")
    desc_idx = find_column_index(headers, fmt, "description")
    type_idx = find_column_index(headers, fmt, "type")

    header_errors: list[ParseError] = []
    for field, idx in (("date", date_idx), ("amount", amount_idx), ("description", desc_idx)):
        if idx == -1:
            expected = ", ".join(fmt.candidates(field))
            header_errors.append(
                ParseError(
                    row=1,
                    column=field,
                    message=f"{field.capitalize()} column not found. Expected one of: {expected}",
                )
            )
    if header_errors:
        _logger.warning(
            "parse_csv:missing_columns file=%s columns=%s",
            file_name,
            [e.column for e in header_errors],
        )
        return ParseResult(
            transactions=[],
            errors=header_errors,
            total_rows=total_rows,
            detected_format=detected,
        )

    transactions: list[ParsedTransaction] = []
    errors: list[ParseError] = []

    for offset, row in enumerate(data_rows):
        row_number = offset + 2
        try:
            date_value = _cell(row, date_idx)
            amount_value = _cell(row, amount_idx)
            description_value = _cell(row, desc_idx)
            type_value = _cell(row, type_idx) if type_idx != -1 else ""

            if not date_value:
                errors.append(
                    ParseError(
                        row=row_number,
                        column=headers[date_idx],
                        message="Date is required",
                        original_row=_original_row(headers, row),
                    )
                )
                continue
            if not amount_value:
                errors.append(
                    ParseError(
                        row=row_number,
                        column=headers[amount_idx],
                        message="Amount is required",
                        original_row=_original_row(headers, row),
                    )
                )
                continue

            try:
                iso_date = normalize_date(date_value)
            except InvalidDate as exc:
                errors.append(
                    ParseError(
                        row=row_number,
                        column=headers[date_idx],
                        message=str(exc),
                        original_row=_original_row(headers, row),
                    )
                )
                continue

            try:
                amount = normalize_amount(amount_value)
            except InvalidAmount as exc:
                errors.append(
                    ParseError(
                        row=row_number,
                        column=headers[amount_idx],
                        message=str(exc),
                        original_row=_original_row(headers, row),
                    )
                )
                continue

            transactions.append(
                ParsedTransaction(
                    date=iso_date,
                    amount_cents=amount.amount_cents,
                    merchant=extract_merchant(description_value),
                    description=description_value or None,
                    transaction_type=(
                        _type_from_column(type_value) if type_value else amount.transaction_type
                    ),
                )
            )
        except Exception as exc:  # noqa: BLE001 - one bad row must not abort the batch
            _logger.exception("parse_csv:row_failed row=%d file=%s", row_number, file_name)
            errors.append(
                ParseError(
                    row=row_number,
                    message=str(exc) or "Unexpected error parsing row",
                    original_row=_original_row(headers, row),
                )
            )

    _logger.info(
        "parse_csv:done format=%s file=%s total_rows=%d success=%d errors=%d",
        detected,
        file_name,
        total_rows,
        len(transactions),
        len(errors),
    )
    return ParseResult(
        transactions=transactions,
        errors=errors,
        total_rows=total_rows,
        detected_format=detected,
    )


__all__ = ["parse_csv"]
