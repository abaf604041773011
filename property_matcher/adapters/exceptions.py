"""Custom exceptions for the listing search adapter."""


class SearchAdapterError(Exception):
    """Base exception for all search adapter errors.

    Catching this catches any failure of one search call. The fan-out treats
    it as zero results for that sub-query and carries on.
    """

    pass


class SearchHTTPError(SearchAdapterError):
    """HTTP request failed with a 4xx/5xx status or a connection error."""

    def __init__(self, message: str, status_code: int, url: str) -> None:
        """
        Args:
            message: Human-readable error message
            status_code: HTTP status code, 0 for connection failures
            url: URL that failed
        """
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class SearchTimeoutError(SearchAdapterError):
    """HTTP request did not complete within the configured timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class SearchResponseError(SearchAdapterError):
    """Response was received but is not valid JSON or lacks the posts list."""

    pass


class SearchConfigurationError(SearchAdapterError):
    """Invalid adapter configuration (bad base URL, timeout, user agent)."""

    pass
