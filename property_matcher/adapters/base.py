"""Base search adapter with shared HTTP handling.

The listing search endpoint is the only external data source the core talks
to. Adapters return parsed SearchResponse objects and signal every failure
through SearchAdapterError subclasses.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from property_matcher.logging import get_logger

from .exceptions import (
    SearchConfigurationError,
    SearchHTTPError,
    SearchResponseError,
    SearchTimeoutError,
)
from .models import SearchParams, SearchResponse

logger = get_logger(__name__, component="adapter")


class BaseSearchAdapter(ABC):
    """Base class for listing search adapters.

    Attributes:
        timeout: HTTP request timeout in seconds
        user_agent: User-Agent header for HTTP requests
    """

    def __init__(self, timeout: int = 15, user_agent: str = "PropertyMatcher/1.0") -> None:
        """
        Args:
            timeout: Per-request timeout in seconds (1-120)
            user_agent: User-Agent header

        Raises:
            SearchConfigurationError: If timeout is out of range or user_agent is empty
        """
        if not 1 <= timeout <= 120:
            raise SearchConfigurationError(
                f"Timeout must be between 1 and 120 seconds, got: {timeout}"
            )
        if not user_agent or not user_agent.strip():
            raise SearchConfigurationError("user_agent cannot be empty")

        self.timeout = timeout
        self.user_agent = user_agent.strip()

        self._session = requests.Session()
        self._session.headers.update(
            {"User-Agent": self.user_agent, "Accept": "application/json"}
        )

    @abstractmethod
    def search(self, params: SearchParams) -> SearchResponse:
        """Run one search call.

        Raises:
            SearchAdapterError: On any failure. Subclasses indicate the kind:
            - SearchHTTPError: HTTP 4xx/5xx or connection failure
            - SearchTimeoutError: Request timed out
            - SearchResponseError: Body is not the expected JSON shape
        """
        pass

    def close(self) -> None:
        self._session.close()

    def _make_request(
        self,
        url: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an HTTP request and return the decoded JSON body.

        Raises:
            SearchHTTPError: On 4xx/5xx status or connection failure
            SearchTimeoutError: On timeout
            SearchResponseError: On a body that is not JSON
        """
        try:
            logger.debug(
                f"HTTP {method} request to {url}",
                extra={
                    "event": "adapter.search.request",
                    "method": method,
                    "url": url,
                    "params": params,
                    "timeout": self.timeout,
                },
            )

            response = self._session.request(
                method=method,
                url=url,
                params=params,
                timeout=self.timeout,
            )

            if response.status_code >= 400:
                is_retryable = response.status_code >= 500
                logger.log(
                    logging.WARNING if is_retryable else logging.ERROR,
                    f"HTTP {response.status_code} error from {url}",
                    extra={
                        "event": "adapter.search.retryable_error" if is_retryable else "adapter.search.error",
                        "status_code": response.status_code,
                        "url": url,
                    },
                )
                raise SearchHTTPError(
                    f"HTTP {response.status_code}: {response.reason}",
                    status_code=response.status_code,
                    url=url,
                )

            try:
                data = response.json()
            except ValueError as e:
                logger.error(
                    f"Failed to parse JSON response from {url}",
                    extra={"event": "adapter.search.error", "error_type": "JSONDecodeError", "url": url},
                )
                raise SearchResponseError(f"Failed to parse JSON response from {url}: {e}") from e

            logger.debug(
                "HTTP request succeeded",
                extra={"event": "adapter.search.succeeded", "status_code": response.status_code, "url": url},
            )
            return data

        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={
                    "event": "adapter.search.retryable_error",
                    "error_type": "Timeout",
                    "url": url,
                    "timeout": self.timeout,
                },
            )
            raise SearchTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={"event": "adapter.search.error", "error_type": type(e).__name__, "url": url},
            )
            raise SearchHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e
