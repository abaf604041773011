"""Additional validation utilities for configuration."""

import warnings
from datetime import timedelta
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for settings that are valid but probably unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    matching = config_dict.get("matching", {})
    if isinstance(matching, dict):
        threshold = matching.get("similarity_threshold")
        if isinstance(threshold, int) and threshold < 50:
            warning_messages.append(
                f"Low similarity_threshold ({threshold}) will notify clients about weak matches"
            )

        rate_limit = _duration_or_none(matching.get("rate_limit"))
        if rate_limit is not None and rate_limit < timedelta(minutes=10):
            warning_messages.append(
                f"Short rate_limit ({matching['rate_limit']}) may flood clients with messages"
            )

    search = config_dict.get("search", {})
    if isinstance(search, dict):
        delay = _duration_or_none(search.get("inter_call_delay"))
        if delay is not None and delay < timedelta(milliseconds=100):
            warning_messages.append(
                f"Short inter_call_delay ({search['inter_call_delay']}) may trip the search endpoint's rate limits"
            )

    storage = config_dict.get("storage", {})
    if isinstance(storage, dict) and storage.get("backend", "json") == "json":
        if storage.get("keep_backup") is False:
            warning_messages.append(
                "keep_backup is disabled; a failed write cannot be recovered from <file>.backup"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)


def _duration_or_none(value: Any):
    if value is None:
        return None
    try:
        return parse_duration(value)
    except DurationParseError:
        # Reported properly by model validation
        return None
