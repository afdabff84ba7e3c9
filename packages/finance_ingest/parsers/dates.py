"""Date normalization: heterogeneous bank date strings → ``YYYY-MM-DD``.

ISO 8601 is tried first, then a fixed, ordered list of explicit formats. The
first format that yields a real calendar date wins, so ambiguous numeric
dates such as ``03/04/2024`` resolve month-first (``MM/dd`` precedes
``dd/MM`` in the list).
"""

from __future__ import annotations

from datetime import date, datetime

from ..errors import InvalidDate

# (label, strptime format, two-digit year). Order is significant.
DATE_FORMATS: tuple[tuple[str, str, bool], ...] = (
    ("MM/dd/yyyy", "%m/%d/%Y", False),  # 01/15/2024 (Chase, Bank of America)
    ("yyyy-MM-dd", "%Y-%m-%d", False),
    ("MM-dd-yyyy", "%m-%d-%Y", False),
    ("dd/MM/yyyy", "%d/%m/%Y", False),  # 15/01/2024 (European)
    ("dd-MM-yyyy", "%d-%m-%Y", False),
    ("M/d/yyyy", "%m/%d/%Y", False),
    ("MM/dd/yy", "%m/%d/%y", True),
    ("M/d/yy", "%m/%d/%y", True),
)


def _parse_iso(s: str) -> date | None:
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def normalize_date(value: str) -> str:
    """Return ``value`` as an ISO ``YYYY-MM-DD`` string.

    >>> normalize_date("1/15/24")
    '2024-01-15'

    Raises :class:`~finance_ingest.errors.InvalidDate` when ``value`` is empty
    or matches none of the supported formats.
    """

    if not isinstance(value, str) or not value:
        raise InvalidDate("Date string is required")
    s = value.strip()
    if not s:
        raise InvalidDate("Date string cannot be empty")

    iso = _parse_iso(s)
    if iso is not None:
        return iso.isoformat()

    for _label, fmt, two_digit_year in DATE_FORMATS:
        try:
            parsed = datetime.strptime(s, fmt).date()
        except ValueError:
            continue
        if two_digit_year:
            # strptime pivots 69-99 into the 1900s; bank exports mean 20yy.
            parsed = parsed.replace(year=2000 + parsed.year % 100)
        return parsed.isoformat()

    raise InvalidDate(
        f'Unable to parse date: "{s}". Expected formats: MM/DD/YYYY, YYYY-MM-DD, etc.'
    )


def is_valid_date(value: str) -> bool:
    try:
        normalize_date(value)
    except InvalidDate:
        return False
    return True


__all__ = ["DATE_FORMATS", "normalize_date", "is_valid_date"]
