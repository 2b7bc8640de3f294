"""
Calendar-date helpers for day-granular logic.

Streak arithmetic works on plain (year, month, day) values. Instants are
converted to a local calendar date once, at the edge, and never again.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from recall.core.clock import ensure_utc
from recall.core.errors import InvalidDateError

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_local_date(value: str | date) -> date:
    """
    Parse a user-local YYYY-MM-DD string into a calendar date.

    Args:
        value: Date string or an existing date (datetimes are rejected so
            no implicit timezone conversion can sneak in)

    Returns:
        The calendar date

    Raises:
        InvalidDateError: If the string is not a valid YYYY-MM-DD date
    """
    if isinstance(value, datetime):
        raise InvalidDateError(f"Expected a calendar date, got datetime {value!r}")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidDateError(f"Expected YYYY-MM-DD, got {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(f"Invalid calendar date {value!r}: {e}") from e


def format_local_date(value: date) -> str:
    return value.isoformat()


def previous_day(value: date) -> date:
    return value - timedelta(days=1)


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from earlier to later (negative if reversed)."""
    return (later - earlier).days


def resolve_timezone(name: str | None, fallback: str = "UTC") -> ZoneInfo:
    """Resolve an IANA timezone name, falling back when it is unknown."""
    try:
        return ZoneInfo(name or fallback)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(fallback)


def local_date_of(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar date of a UTC instant as seen in the given timezone."""
    return ensure_utc(instant).astimezone(tz).date()
