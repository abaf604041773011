"""Duration parsing utilities for configuration."""

import re
from datetime import timedelta
from typing import Union


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}

_HUMAN_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)")
_ISO_PATTERN = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """
    Parse a duration into a timedelta.

    Supports human-readable values ("300ms", "5m", "1h", "1h30m", "7d"),
    ISO-8601 durations ("PT5M", "PT1H", "P7D") and bare numbers, which are
    read as seconds.

    Args:
        value: Duration to parse

    Returns:
        Parsed duration

    Raises:
        DurationParseError: If the value is empty, malformed, zero or negative

    Examples:
        >>> parse_duration("5m")
        datetime.timedelta(seconds=300)
        >>> parse_duration("300ms").total_seconds()
        0.3
        >>> parse_duration("PT1H")
        datetime.timedelta(seconds=3600)
    """
    if isinstance(value, timedelta):
        result = value
    elif isinstance(value, bool):
        raise DurationParseError(f"Invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        result = timedelta(seconds=value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise DurationParseError("Duration string cannot be empty")
        if text.upper().startswith("P"):
            result = _parse_iso8601(text)
        else:
            result = _parse_human_readable(text)
    else:
        raise DurationParseError(f"Unsupported duration type: {type(value).__name__}")

    if result <= timedelta(0):
        raise DurationParseError(f"Duration must be positive: {value!r}")

    return result


def _parse_iso8601(text: str) -> timedelta:
    match = _ISO_PATTERN.match(text.upper())
    if not match or not any(match.groups()):
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{text}'. "
            "Expected format like 'P7D', 'PT1H30M', 'PT5M', or 'PT0.3S'"
        )

    days, hours, minutes, seconds = match.groups()
    return timedelta(
        days=int(days or 0),
        hours=int(hours or 0),
        minutes=int(minutes or 0),
        seconds=float(seconds or 0),
    )


def _parse_human_readable(text: str) -> timedelta:
    lowered = text.lower()
    if lowered.replace(".", "", 1).isdigit():
        return timedelta(seconds=float(lowered))

    matches = _HUMAN_PATTERN.findall(lowered)
    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{text}'. "
            "Expected format like '300ms', '5m', '1h', '7d', or combinations like '1h30m'"
        )

    # Reject leftovers such as "5x" or "1h and 5m"
    rebuilt = "".join(f"{num}{unit}" for num, unit in matches)
    if rebuilt != re.sub(r"\s+", "", lowered):
        raise DurationParseError(
            f"Invalid characters in duration: '{text}'. "
            "Use only numbers and units: ms, s, m, h, d"
        )

    total = sum(float(num) * _UNIT_SECONDS[unit] for num, unit in matches)
    return timedelta(seconds=total)


def format_duration(duration: timedelta) -> str:
    """
    Render a duration for log and error messages.

    Examples:
        >>> format_duration(timedelta(hours=1))
        '1 hour'
        >>> format_duration(timedelta(milliseconds=300))
        '300 milliseconds'
    """
    seconds = duration.total_seconds()
    if seconds < 1:
        value, unit = int(round(seconds * 1000)), "millisecond"
    elif seconds < 60:
        value, unit = int(seconds), "second"
    elif seconds < 3600:
        value, unit = int(seconds // 60), "minute"
    elif seconds < 86400:
        value, unit = int(seconds // 3600), "hour"
    else:
        value, unit = int(seconds // 86400), "day"

    return f"{value} {unit}{'s' if value != 1 else ''}"
