"""Listing search endpoint adapter."""

from .base import BaseSearchAdapter
from .exceptions import (
    SearchAdapterError,
    SearchConfigurationError,
    SearchHTTPError,
    SearchResponseError,
    SearchTimeoutError,
)
from .http import HTTPSearchAdapter
from .mapping import post_to_offer, requirement_to_params
from .models import SearchParams, SearchPost, SearchResponse

__all__ = [
    "BaseSearchAdapter",
    "HTTPSearchAdapter",
    "SearchParams",
    "SearchPost",
    "SearchResponse",
    "requirement_to_params",
    "post_to_offer",
    "SearchAdapterError",
    "SearchHTTPError",
    "SearchTimeoutError",
    "SearchResponseError",
    "SearchConfigurationError",
]
