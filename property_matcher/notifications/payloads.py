"""Template context for match messages.

Builds the display values the message template needs from a MatchCandidate:
original price/area text when the listing carries it, a unit on bare area
numbers, and the short list of reasons the offer matched.
"""

from typing import Any, Dict, List, Optional

from property_matcher.domain.models import Offer
from property_matcher.matching.models import MatchCandidate

DEFAULT_NAME = "عميلنا العزيز"
DEFAULT_TITLE = "عقار"
PRICE_ON_REQUEST = "السعر عند التواصل"
AREA_UNKNOWN = "غير محدد"
LOCATION_UNKNOWN = "الموقع غير محدد"
AREA_UNIT = "متر"
OFFER_LINK = "https://masaak.com/?p={id}"

STRONG_SCORE = 90

# (breakdown key, strong wording, good wording)
_REASONS = (
    ("price", "السعر مناسب جداً", "السعر قريب من ميزانيتك"),
    ("area", "المساحة مثالية", "المساحة مناسبة"),
    ("location", "في حيك المفضل", "في منطقة قريبة"),
)


def _number_text(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    return str(int(value)) if float(value).is_integer() else str(value)


def format_price(offer: Offer) -> str:
    meta = offer.meta
    return meta.price_text or _number_text(meta.price) or PRICE_ON_REQUEST


def format_area(offer: Offer) -> str:
    """Area text with a unit; text that already carries one is kept as is."""
    meta = offer.meta
    area = meta.area_text or _number_text(meta.area) or AREA_UNKNOWN
    if area == AREA_UNKNOWN or "م²" in area or AREA_UNIT in area:
        return area
    return f"{area} {AREA_UNIT}"


def format_location(offer: Offer) -> str:
    return offer.meta.neighborhood or offer.meta.city or LOCATION_UNKNOWN


def offer_link(offer: Offer) -> str:
    return offer.link or OFFER_LINK.format(id=offer.id)


def match_reasons(breakdown: Dict[str, int], good_threshold: int = 70) -> List[str]:
    """Why the offer matched, from sub-scores at or above the good threshold.

    Example:
        >>> match_reasons({"price": 100, "area": 75, "location": 40})
        ['السعر مناسب جداً', 'المساحة مناسبة']
    """
    reasons = []
    for key, strong, good in _REASONS:
        value = breakdown.get(key, 0)
        if value >= STRONG_SCORE:
            reasons.append(strong)
        elif value >= good_threshold:
            reasons.append(good)
    return reasons


def build_message_context(candidate: MatchCandidate, good_threshold: int = 70) -> Dict[str, Any]:
    """Build the template context for a candidate's match message."""
    offer = candidate.offer
    similarity = candidate.similarity

    return {
        "name": candidate.name or DEFAULT_NAME,
        "match_quality": similarity.match_quality,
        "category": offer.meta.category or DEFAULT_TITLE,
        "title": offer.title or DEFAULT_TITLE,
        "price": format_price(offer),
        "area": format_area(offer),
        "location": format_location(offer),
        "score": similarity.score,
        "reasons": match_reasons(similarity.breakdown, good_threshold),
        "link": offer_link(offer),
    }
