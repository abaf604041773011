"""Test helper utilities for property matcher tests."""

from .clock import FakeClock
from .fake_search import FakeSearchAdapter, make_post
from .records import PHONE, apartment_offer, make_candidate, searcher_record
from .senders import FailingSender, RecordingSender

__all__ = [
    "FakeClock",
    "FakeSearchAdapter",
    "make_post",
    "PHONE",
    "apartment_offer",
    "make_candidate",
    "searcher_record",
    "RecordingSender",
    "FailingSender",
]
