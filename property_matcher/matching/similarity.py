"""Weighted similarity between a standing request and an offer.

Property type and purpose are gates: a related type (>= 70) and the same
purpose are required before anything is scored. The score itself is
price 40%, area 30%, location 30%.
"""

import math
from typing import Iterable, Optional

from property_matcher.domain.models import Offer, Requirement
from property_matcher.normalization import property_type_similarity

from .models import SimilarityResult

PRICE_WEIGHT = 0.4
AREA_WEIGHT = 0.3
LOCATION_WEIGHT = 0.3

TYPE_GATE = 70
SALE = "بيع"
RENT = "إيجار"
SAME_CITY_MARKERS = ("الهفوف", "المبرز", "العمران")

QUALITY_BANDS = (
    (90, "🟢 ممتاز"),
    (80, "🟢 جيد جداً"),
    (70, "🟡 جيد"),
    (60, "🟡 مقبول"),
)
WEAK_QUALITY = "⚪ ضعيف"


def _width(low: float, high: float) -> float:
    # An open-ended window is measured against its lower bound.
    return high - low if high != math.inf else low


def _reference(low: float, high: float) -> float:
    return high if high != math.inf else low


def price_similarity(
    minimum: Optional[float], maximum: Optional[float], price: Optional[float]
) -> float:
    """Score an offer price against the requested window (0-100).

    Inside the window is 100; within 25% of the window width outside it
    decays to 75; beyond that it falls towards 0 relative to the bound.
    """
    if not price or price <= 0:
        return 0
    if not minimum and not maximum:
        return 100

    low = minimum or 0
    high = maximum or math.inf
    if low <= price <= high:
        return 100

    variance = _width(low, high) * 0.25
    if price < low:
        distance = low - price
        if distance <= variance:
            return max(75, 100 - (distance / variance) * 25)
        return max(0, 75 - ((distance - variance) / low) * 75)

    distance = price - high
    if distance <= variance:
        return max(75, 100 - (distance / variance) * 25)
    return max(0, 75 - ((distance - variance) / high) * 75)


def area_similarity(
    minimum: Optional[float], maximum: Optional[float], area: Optional[float]
) -> float:
    """Score an offer area against the requested window (0-100).

    Smaller offers are tolerated more (40% of the width) than larger ones
    (25%). Far-off areas bottom out at 10, never 0.
    """
    if not area or area <= 0:
        return 0
    if not minimum and not maximum:
        return 100

    low = minimum or 0
    high = maximum or math.inf
    if low <= area <= high:
        return 100

    width = _width(low, high)
    if area < low:
        distance = low - area
        variance = width * 0.4
        if distance <= variance:
            return max(70, 100 - (distance / variance) * 30)
        return max(10, 70 - ((distance - variance) / _reference(low, high)) * 60)

    distance = area - high
    variance = width * 0.25
    if distance <= variance:
        return max(70, 100 - (distance / variance) * 30)
    return max(10, 70 - ((distance - variance) / high) * 50)


def location_similarity(
    neighborhoods: Iterable[str], neighborhood: Optional[str], city: Optional[str]
) -> float:
    """Score the offer location against the requested neighborhoods (0-100).

    100 on a substring match, 50-90 on shared words, 40 for the same city,
    else 0. No requested neighborhoods is 100; an offer without any
    location is 0.
    """
    requested = [n for n in (neighborhoods or []) if n]
    if not neighborhood and not city:
        return 0
    if not requested:
        return 100

    offer_location = f"{neighborhood or ''} {city or ''}".lower().strip()

    for name in requested:
        wanted = name.lower().strip()
        if wanted in offer_location or offer_location in wanted:
            return 100

    offer_words = [w for w in offer_location.split() if len(w) > 2]
    request_words = [w for n in requested for w in n.lower().split() if len(w) > 2]
    matching = sum(
        1 for word in offer_words if any(rw in word or word in rw for rw in request_words)
    )
    if matching and offer_words:
        return round(50 + matching / len(offer_words) * 40)

    offer_city = city or ""
    if any(marker in name and marker in offer_city for name in requested for marker in SAME_CITY_MARKERS):
        return 40

    return 0


def _purpose_group(purpose: str) -> str:
    text = purpose.lower().strip()
    return SALE if "شراء" in text or "بيع" in text else RENT


def purpose_similarity(requested: Optional[str], offered: Optional[str]) -> float:
    """100 when both sides agree on sale versus rent (or either is unknown), else 0."""
    if not requested or not offered:
        return 100
    return 100 if _purpose_group(requested) == _purpose_group(offered) else 0


def match_quality(score: int) -> str:
    for threshold, label in QUALITY_BANDS:
        if score >= threshold:
            return label
    return WEAK_QUALITY


def calculate_similarity(
    requirement: Requirement, offer: Offer, threshold: int = 70
) -> SimilarityResult:
    """Score an offer against one requirement.

    Args:
        requirement: The standing request
        offer: The incoming offer
        threshold: Score at which ``matched`` becomes True

    Returns:
        SimilarityResult with score, quality label and per-factor breakdown
    """
    meta = offer.meta
    type_score = property_type_similarity(requirement.property_type, meta.category)
    purpose_score = purpose_similarity(requirement.purpose, meta.purpose)

    if type_score < TYPE_GATE or purpose_score < 100:
        return SimilarityResult(
            score=0,
            matched=False,
            match_quality=WEAK_QUALITY,
            breakdown={
                "type": round(type_score),
                "purpose": round(purpose_score),
                "price": 0,
                "area": 0,
                "location": 0,
            },
            reason="Property type mismatch" if type_score < TYPE_GATE else "Purpose mismatch (بيع/إيجار)",
        )

    price = price_similarity(requirement.price_min, requirement.price_max, meta.price)
    area = area_similarity(requirement.area_min, requirement.area_max, meta.area)
    location = location_similarity(requirement.neighborhoods, meta.neighborhood, meta.city)

    total = int(round(price * PRICE_WEIGHT + area * AREA_WEIGHT + location * LOCATION_WEIGHT))

    return SimilarityResult(
        score=total,
        matched=total >= threshold,
        match_quality=match_quality(total),
        breakdown={
            "type": round(type_score),
            "purpose": round(purpose_score),
            "price": round(price),
            "area": round(area),
            "location": round(location),
        },
    )
