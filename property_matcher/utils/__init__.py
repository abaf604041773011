"""Utility functions for time handling and phone normalization."""

from .phone import normalize_phone
from .timestamps import (
    ensure_utc,
    format_timestamp,
    from_epoch,
    parse_timestamp,
    to_epoch_ms,
    utc_now,
)

__all__ = [
    # Phone numbers
    "normalize_phone",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "from_epoch",
    "to_epoch_ms",
    "parse_timestamp",
    "format_timestamp",
]
