"""Relevance scoring for fan-out results.

Weights (max 100):
    territory     40 (10 when the result came from the city-wide fallback)
    subcategory   20 exact / 10 partial / 10 when none was requested
    price         15 inside the window / 7 within the 20% band / 7 unknown
    area          same as price
    title         10 when the property type is in the title, +5 for the subcategory
"""

from typing import List, Optional, Sequence

from property_matcher.domain.models import Requirement, SearchResult
from property_matcher.normalization import normalize_property_type

TERRITORY_WEIGHT = 40
FALLBACK_TERRITORY_WEIGHT = 10
SUBCATEGORY_EXACT = 20
SUBCATEGORY_PARTIAL = 10
RANGE_INSIDE = 15
RANGE_NEAR = 7
RANGE_NEUTRAL = 7
TITLE_TYPE = 10
TITLE_SUBCATEGORY = 5

TOLERANCE = 0.20


def _subcategory_score(requested: Optional[str], offered: Optional[str]) -> int:
    if not requested:
        return SUBCATEGORY_PARTIAL
    if not offered:
        return 0

    req = requested.strip().lower()
    off = offered.strip().lower()
    if req == off:
        return SUBCATEGORY_EXACT
    if req in off or off in req:
        return SUBCATEGORY_PARTIAL
    return 0


def _range_score(value: Optional[float], minimum: Optional[float], maximum: Optional[float]) -> int:
    """Score a value against a requested window.

    A missing value or a window without usable (positive) bounds earns the
    neutral credit.
    """
    minimum = minimum if minimum is not None and minimum > 0 else None
    maximum = maximum if maximum is not None and maximum > 0 else None
    if value is None or value <= 0 or (minimum is None and maximum is None):
        return RANGE_NEUTRAL

    low = minimum or 0
    high = maximum if maximum is not None else float("inf")

    if low <= value <= high:
        return RANGE_INSIDE
    if low * (1 - TOLERANCE) <= value <= high * (1 + TOLERANCE):
        return RANGE_NEAR
    return 0


def _title_score(title: str, requirement: Requirement) -> int:
    text = (title or "").lower()
    if not text:
        return 0

    points = 0
    property_type = (requirement.property_type or "").strip().lower()
    if property_type:
        canonical = normalize_property_type(property_type)
        if property_type in text or (canonical and canonical in text):
            points += TITLE_TYPE

    sub_category = (requirement.sub_category or "").strip().lower()
    if sub_category and sub_category in text:
        points += TITLE_SUBCATEGORY

    return points


def score(result: SearchResult, requirement: Requirement) -> int:
    """Score one result against the requirement, 0-100."""
    meta = result.offer.meta

    total = FALLBACK_TERRITORY_WEIGHT if result.is_fallback else TERRITORY_WEIGHT
    total += _subcategory_score(requirement.sub_category, meta.sub_category)
    total += _range_score(meta.price, requirement.price_min, requirement.price_max)
    total += _range_score(meta.area, requirement.area_min, requirement.area_max)
    total += _title_score(result.offer.title, requirement)

    return max(0, min(100, int(round(total))))


def score_and_sort(results: Sequence[SearchResult], requirement: Requirement) -> List[SearchResult]:
    """Annotate each result with its score and sort best first.

    Ties keep their incoming order.
    """
    scored = [
        result.model_copy(update={"relevance_score": score(result, requirement)})
        for result in results
    ]
    return sorted(scored, key=lambda r: r.relevance_score, reverse=True)
