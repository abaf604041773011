"""Timestamp utilities for UTC handling.

Client records written by older bot processes carry epoch-millisecond
integers, newer ones carry ISO 8601 strings. Everything in memory is a
timezone-aware UTC datetime.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union

# Integers above this are epoch milliseconds rather than seconds (year 2286 in seconds).
_MILLISECONDS_THRESHOLD = 10_000_000_000


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC, aware ones are converted.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def from_epoch(value: Union[int, float]) -> datetime:
    """Convert an epoch timestamp (seconds or milliseconds) to UTC datetime.

    Example:
        >>> from_epoch(1730728800000) == from_epoch(1730728800)
        True
    """
    seconds = value / 1000 if abs(value) >= _MILLISECONDS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    """Convert datetime to epoch milliseconds."""
    return int(ensure_utc(dt).timestamp() * 1000)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a persisted timestamp into a UTC datetime.

    Accepts datetimes, epoch integers (seconds or milliseconds), numeric
    strings and ISO 8601 strings (with or without a ``Z`` suffix).

    Returns:
        UTC datetime, or None when the value is empty or unparseable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, (int, float)):
        return from_epoch(value)

    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        if cleaned.lstrip("-").isdigit():
            return from_epoch(int(cleaned))
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(cleaned))
        except ValueError:
            return None

    return None


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with millisecond precision.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc))
        '2025-11-04T12:00:00.000Z'
    """
    dt_utc = ensure_utc(dt)
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt_utc.microsecond // 1000:03d}Z"
