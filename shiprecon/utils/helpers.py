"""
Helper utilities
"""
from datetime import date, datetime, timezone
from typing import Any, Optional
from dateutil import parser as date_parser


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an API timestamp into a naive UTC datetime (None if unparseable)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            dt = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_date(value: Any) -> Optional[date]:
    """Parse a date in any common format ("February 7, 2026", "02/07/2026", ISO)."""
    dt = parse_datetime(value)
    return dt.date() if dt else None


def parse_num(value: Any) -> Optional[float]:
    """Parse a number that may contain thousands separators; None if invalid."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").replace("$", "").strip())
    except ValueError:
        return None


def safe_divide(numerator: Optional[float], denominator: int) -> Optional[float]:
    """Divide, returning None for a missing numerator or zero denominator."""
    if numerator is None or not denominator:
        return None
    return numerator / denominator
