"""HTTP adapter for the listing search endpoint.

API: GET {base_url}?property_type=...&preferred_area=...&page=1
Response: {"total": int, "count": int, "posts": [{"ID": ..., "title": ..., ...}]}
"""

from pydantic import ValidationError

from property_matcher.config.models import SearchConfig
from property_matcher.logging import get_logger

from .base import BaseSearchAdapter
from .exceptions import SearchConfigurationError, SearchResponseError
from .models import SearchParams, SearchPost, SearchResponse

logger = get_logger(__name__, component="adapter")


class HTTPSearchAdapter(BaseSearchAdapter):
    """Search adapter for the listing endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 15,
        user_agent: str = "PropertyMatcher/1.0",
    ) -> None:
        super().__init__(timeout=timeout, user_agent=user_agent)
        if not base_url or not base_url.startswith(("http://", "https://")):
            raise SearchConfigurationError(f"Invalid search base URL: {base_url!r}")
        self.base_url = base_url

    @classmethod
    def from_config(cls, config: SearchConfig) -> "HTTPSearchAdapter":
        return cls(base_url=config.base_url, timeout=config.timeout, user_agent=config.user_agent)

    def search(self, params: SearchParams) -> SearchResponse:
        """Run one search call.

        Posts without an id are dropped with a warning; a body that is not an
        object with a ``posts`` list is a SearchResponseError.
        """
        data = self._make_request(self.base_url, params=params.to_query())

        if not isinstance(data, dict) or not isinstance(data.get("posts"), list):
            logger.error(
                "Invalid search response structure",
                extra={"event": "adapter.search.invalid_response", "url": self.base_url},
            )
            raise SearchResponseError("Search response has no posts list")

        posts = []
        for raw in data["posts"]:
            try:
                posts.append(SearchPost.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed post",
                    extra={"event": "adapter.search.post_skipped", "error": str(e)},
                )

        response = SearchResponse(
            total=data.get("total", len(posts)),
            count=data.get("count", len(posts)),
            posts=posts,
        )

        logger.info(
            f"Search returned {len(posts)} posts",
            extra={
                "event": "adapter.search.completed",
                "count": response.count,
                "total": response.total,
                "params": params.to_query(),
            },
        )
        return response
