"""Phone number normalization used as the client identity key."""

import re

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(phone: str) -> str:
    """Normalize a phone number to the digits-only storage key.

    Strips chat transport suffixes (``@s.whatsapp.net``), a leading ``+`` or
    ``00`` international prefix, and any separators.

    Args:
        phone: Raw phone number or chat identifier

    Returns:
        Digits-only phone number

    Raises:
        ValueError: If no digits remain after normalization

    Example:
        >>> normalize_phone("+966 50 000 0001@s.whatsapp.net")
        '966500000001'
    """
    if phone is None:
        raise ValueError("Phone number is required")

    raw = str(phone).strip()
    if "@" in raw:
        raw = raw.split("@", 1)[0]
    if ":" in raw:
        # multi-device ids look like 966500000001:12
        raw = raw.split(":", 1)[0]

    digits = _NON_DIGITS.sub("", raw)
    if digits.startswith("00"):
        digits = digits[2:]

    if not digits:
        raise ValueError(f"Invalid phone number: {phone!r}")

    return digits
