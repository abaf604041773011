"""Unit tests for phone number normalization."""

import pytest

from property_matcher.utils.phone import normalize_phone


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("966500000001", "966500000001"),
        ("+966 50 000 0001", "966500000001"),
        ("00966500000001", "966500000001"),
        ("966500000001@s.whatsapp.net", "966500000001"),
        ("966500000001:12@s.whatsapp.net", "966500000001"),
        ("966-50-000-0001", "966500000001"),
        (966500000001, "966500000001"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "@s.whatsapp.net", "abc"])
def test_normalize_phone_rejects_values_without_digits(raw):
    with pytest.raises(ValueError):
        normalize_phone(raw)
