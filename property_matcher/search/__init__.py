"""Search fan-out, query variations and relevance scoring."""

from .fanout import FALLBACK_REASON, SearchFanout
from .scoring import score, score_and_sort
from .variations import (
    QueryVariation,
    RangeVariation,
    area_variations,
    build_query_plan,
    price_variations,
    type_variations,
)

__all__ = [
    "SearchFanout",
    "FALLBACK_REASON",
    "score",
    "score_and_sort",
    "QueryVariation",
    "RangeVariation",
    "price_variations",
    "area_variations",
    "type_variations",
    "build_query_plan",
]
