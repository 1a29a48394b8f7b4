"""Date and time utilities for Campus Calendar."""

from datetime import date, datetime
from typing import Any, Optional

import pytz
from dateutil import parser


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC.

    Args:
        dt: Datetime to convert

    Returns:
        UTC datetime
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def now_utc() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(pytz.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a backend timestamp into an aware UTC datetime.

    Accepts datetimes, dates, ISO 8601 strings (``Z`` suffix included) and
    Postgres text timestamps such as ``2024-03-01 10:00:00+00``. Naive values
    are taken to be UTC.

    Args:
        value: Raw timestamp value

    Returns:
        UTC datetime, or None for empty values

    Raises:
        ValueError: If a string cannot be parsed
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return pytz.utc.localize(datetime(value.year, value.month, value.day))
    if isinstance(value, str):
        try:
            parsed = parser.isoparse(value)
        except ValueError:
            parsed = parser.parse(value)
        return ensure_utc(parsed)
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def to_iso(dt: datetime) -> str:
    """Serialize a datetime as an ISO 8601 UTC string."""
    return ensure_utc(dt).isoformat()


def format_clock(dt: datetime, tz_name: str = "UTC") -> str:
    """Format a time of day as ``h:mm AM``."""
    local = ensure_utc(dt).astimezone(pytz.timezone(tz_name))
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"
