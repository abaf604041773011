"""Query fan-out over the listing search endpoint.

One requirement becomes several sequential sub-queries: the exact query,
relaxed variations, one query per neighborhood and per word of multi-word
terms, and finally a city-wide fallback. Results are merged by offer id,
scored and truncated.
"""

import time
from typing import Callable, Dict, Iterable, List, Optional

from property_matcher.adapters import (
    BaseSearchAdapter,
    SearchAdapterError,
    SearchParams,
    SearchPost,
    post_to_offer,
    requirement_to_params,
)
from property_matcher.config.models import SearchConfig
from property_matcher.domain.models import Offer, Requirement, SearchResult
from property_matcher.logging import get_logger
from property_matcher.normalization import expand_areas, filter_results_by_area

from .scoring import score_and_sort
from .variations import build_query_plan

logger = get_logger(__name__, component="search")

FALLBACK_REASON = "بحث عام على مستوى المدينة"
QUICK_SEARCH_LIMIT = 5
SPLIT_FIELDS = ("preferred_area", "property_type")


def _merge(target: Dict[str, Offer], offers: Iterable[Offer]) -> int:
    """Insert offers not yet in target; return how many were new."""
    added = 0
    for offer in offers:
        if offer.id not in target:
            target[offer.id] = offer
            added += 1
    return added


class SearchFanout:
    """Runs the sub-queries for one requirement against a search adapter.

    Attributes:
        adapter: Search adapter used for every sub-query
        max_results: Results returned by ``search``
        per_neighborhood_cap: Results kept from each neighborhood's own query
        inter_call_delay: Seconds slept between consecutive sub-queries
        include_variations: Whether relaxed queries are issued
    """

    def __init__(
        self,
        adapter: BaseSearchAdapter,
        max_results: int = 20,
        per_neighborhood_cap: int = 5,
        inter_call_delay: float = 0.3,
        include_variations: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_results < 1:
            raise ValueError(f"max_results must be positive, got: {max_results}")
        if per_neighborhood_cap < 1:
            raise ValueError(f"per_neighborhood_cap must be positive, got: {per_neighborhood_cap}")

        self.adapter = adapter
        self.max_results = max_results
        self.per_neighborhood_cap = per_neighborhood_cap
        self.inter_call_delay = max(0.0, inter_call_delay)
        self.include_variations = include_variations
        self._sleep = sleep
        self._calls = 0

    @classmethod
    def from_config(
        cls,
        adapter: BaseSearchAdapter,
        config: SearchConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "SearchFanout":
        return cls(
            adapter,
            max_results=config.max_results,
            per_neighborhood_cap=config.per_neighborhood_cap,
            inter_call_delay=config.inter_call_delay_seconds,
            include_variations=config.include_variations,
            sleep=sleep,
        )

    @property
    def calls_made(self) -> int:
        """Sub-queries issued by the most recent search."""
        return self._calls

    def search(
        self,
        requirement: Requirement,
        max_results: Optional[int] = None,
        include_variations: Optional[bool] = None,
    ) -> List[SearchResult]:
        """Fan a requirement out and return scored, deduplicated results.

        Args:
            requirement: What the searcher is looking for
            max_results: Override for the instance limit
            include_variations: Override for the instance setting

        Returns:
            At most ``max_results`` results, best first
        """
        limit = max_results or self.max_results
        variations = self.include_variations if include_variations is None else include_variations
        self._calls = 0

        requirement = requirement.model_copy(
            update={"neighborhoods": expand_areas(requirement.neighborhoods)}
        )

        collected: Dict[str, Offer] = {}
        _merge(collected, self._search_requirement(requirement))
        exact_count = len(collected)

        if variations and len(collected) < limit:
            for label, variant in build_query_plan(requirement)[1:]:
                if len(collected) >= 2 * limit:
                    logger.debug(
                        "Enough results collected, skipping remaining variations",
                        extra={"event": "fanout.variations.stopped", "collected": len(collected)},
                    )
                    break
                added = _merge(collected, self._search_requirement(variant))
                logger.debug(
                    f"Variation {label} added {added} results",
                    extra={"event": "fanout.variation.completed", "variation": label, "added": added},
                )

        results = [SearchResult(offer=offer) for offer in collected.values()]

        if not results and requirement.neighborhoods:
            city_wide = requirement.model_copy(update={"neighborhoods": []})
            fallback: Dict[str, Offer] = {}
            _merge(fallback, self._search_requirement(city_wide, filter_area=False))
            results = [
                SearchResult(offer=offer, is_fallback=True, fallback_reason=FALLBACK_REASON)
                for offer in fallback.values()
            ]
            logger.info(
                f"City-wide fallback returned {len(results)} results",
                extra={"event": "fanout.fallback.completed", "count": len(results)},
            )

        ranked = score_and_sort(results, requirement)[:limit]

        logger.info(
            f"Fan-out returned {len(ranked)} results from {self._calls} sub-queries",
            extra={
                "event": "fanout.search.completed",
                "sub_queries": self._calls,
                "exact_results": exact_count,
                "unique_results": len(results),
                "returned": len(ranked),
                "fallback": bool(results) and results[0].is_fallback,
            },
        )
        return ranked

    def quick_search(self, requirement: Requirement) -> List[SearchResult]:
        """Exact query only, at most five results."""
        return self.search(requirement, max_results=QUICK_SEARCH_LIMIT, include_variations=False)

    def _search_requirement(self, requirement: Requirement, filter_area: bool = True) -> List[Offer]:
        neighborhoods = requirement.neighborhoods

        if len(neighborhoods) > 1:
            merged: Dict[str, Offer] = {}
            for neighborhood in neighborhoods:
                params = requirement_to_params(requirement, area=neighborhood)
                offers = [post_to_offer(p) for p in self._search_split(params)]
                _merge(merged, offers[: self.per_neighborhood_cap])
            return list(merged.values())

        params = requirement_to_params(requirement)
        offers = [post_to_offer(p) for p in self._search_split(params)]
        if filter_area and neighborhoods:
            offers = filter_results_by_area(offers, neighborhoods[0])
        return offers

    def _search_split(self, params: SearchParams) -> List[SearchPost]:
        """Query each word of multi-word terms and the full phrase."""
        queries: List[SearchParams] = []
        for field in SPLIT_FIELDS:
            value = getattr(params, field)
            words = value.split() if value else []
            if len(words) > 1:
                queries.extend(params.replace(**{field: word}) for word in words)

        if not queries:
            return self._run(params)
        queries.append(params)

        posts: Dict[str, SearchPost] = {}
        for query in queries:
            for post in self._run(query):
                posts.setdefault(post.id, post)
        return list(posts.values())

    def _run(self, params: SearchParams) -> List[SearchPost]:
        if self._calls and self.inter_call_delay:
            self._sleep(self.inter_call_delay)
        self._calls += 1

        try:
            return list(self.adapter.search(params).posts)
        except SearchAdapterError as e:
            logger.warning(
                f"Sub-query failed, treating as empty: {e}",
                extra={
                    "event": "fanout.subquery.failed",
                    "error_type": type(e).__name__,
                    "params": params.to_query(),
                },
            )
            return []
