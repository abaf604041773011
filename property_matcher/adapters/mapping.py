"""Translation between domain requirements/offers and endpoint shapes."""

from typing import Optional

from property_matcher.domain.models import Offer, Requirement
from property_matcher.normalization import normalize_area_name

from .models import SearchParams, SearchPost

RENT = "إيجار"


def _positive(value: Optional[float]) -> Optional[float]:
    return value if value is not None and value > 0 else None


def requirement_to_params(
    requirement: Requirement, area: Optional[str] = None, page: int = 1
) -> SearchParams:
    """Map a requirement onto endpoint parameters.

    - preferred_area is ``area`` or the first neighborhood, normalized
    - purpose is only sent for rent; sale filtering on the endpoint is too strict
    - price and area bounds are only sent when positive

    Example:
        >>> requirement_to_params(Requirement(property_type="شقة", purpose="شراء",
        ...     price_max=500000, neighborhoods=["الروضه"])).to_query()
        {'property_type': 'شقة', 'preferred_area': 'الروضة', 'max_price': 500000, 'page': 1}
    """
    if area is None and requirement.neighborhoods:
        area = requirement.neighborhoods[0]

    return SearchParams(
        property_type=requirement.property_type or None,
        preferred_area=normalize_area_name(area) or None,
        purpose=RENT if requirement.is_rent else None,
        min_price=_positive(requirement.price_min),
        max_price=_positive(requirement.price_max),
        min_area=_positive(requirement.area_min),
        max_area=_positive(requirement.area_max),
        page=page,
    )


def post_to_offer(post: SearchPost) -> Offer:
    """Convert an endpoint post into the inbound offer shape."""
    meta = {
        "price_amount": post.price_amount,
        "price_text": post.price_text,
        "arc_space": post.space,
        "area_text": post.space_text,
        "City": post.city,
        "location": post.location,
        "arc_category": post.property_type,
        "offer_type": post.purpose,
        "sub_catt": post.sub_catt or post.arc_subcategory,
        "thumbnail": post.thumbnail,
        "post_date": post.date,
    }
    return Offer(id=post.id, title=post.title, link=post.link, meta=meta)
