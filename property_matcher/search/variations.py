"""Relaxed query variations for the search fan-out.

Each variation is its own query; the fan-out merges their results by id.
"""

from typing import List, NamedTuple, Optional

from property_matcher.domain.models import Requirement
from property_matcher.normalization import property_type_synonyms

PRICE_EXPANSIONS = (0.20, 0.30)
AREA_EXPANSIONS = (0.15, 0.25)
MAX_TYPE_SUBSTITUTES = 2


class RangeVariation(NamedTuple):
    minimum: float
    maximum: float
    label: str


class QueryVariation(NamedTuple):
    label: str
    requirement: Requirement


def _expand(
    minimum: Optional[float], maximum: Optional[float], ratios, prefix: str
) -> List[RangeVariation]:
    if minimum is None or maximum is None or maximum <= minimum:
        return []

    width = maximum - minimum
    variations = []
    for ratio in ratios:
        slack = width * ratio
        variations.append(
            RangeVariation(
                minimum=float(max(0, round(minimum - slack))),
                maximum=float(round(maximum + slack)),
                label=f"{prefix}+{int(ratio * 100)}%",
            )
        )
    return variations


def price_variations(price_min: Optional[float], price_max: Optional[float]) -> List[RangeVariation]:
    """Price window widened by 20% and 30% of its width on each side.

    Example:
        >>> [tuple(v[:2]) for v in price_variations(500000, 600000)]
        [(480000.0, 620000.0), (470000.0, 630000.0)]
    """
    return _expand(price_min, price_max, PRICE_EXPANSIONS, "price")


def area_variations(area_min: Optional[float], area_max: Optional[float]) -> List[RangeVariation]:
    """Area window widened by 15% and 25% of its width on each side."""
    return _expand(area_min, area_max, AREA_EXPANSIONS, "area")


def type_variations(property_type: Optional[str]) -> List[str]:
    """Up to two substitute spellings for the property type, the type itself excluded."""
    if not property_type:
        return []
    current = property_type.strip()
    return [s for s in property_type_synonyms(current)[1:] if s and s != current][
        :MAX_TYPE_SUBSTITUTES
    ]


def build_query_plan(requirement: Requirement) -> List[QueryVariation]:
    """Exact query first, then every relaxed variation, without duplicates."""
    plan = [QueryVariation("exact", requirement)]
    seen = {requirement.model_dump_json()}

    candidates = []
    for variation in price_variations(requirement.price_min, requirement.price_max):
        candidates.append(
            (variation.label, {"price_min": variation.minimum, "price_max": variation.maximum})
        )
    for variation in area_variations(requirement.area_min, requirement.area_max):
        candidates.append(
            (variation.label, {"area_min": variation.minimum, "area_max": variation.maximum})
        )
    for synonym in type_variations(requirement.property_type):
        candidates.append((f"type:{synonym}", {"property_type": synonym}))

    for label, changes in candidates:
        variant = requirement.model_copy(update=changes)
        key = variant.model_dump_json()
        if key in seen:
            continue
        seen.add(key)
        plan.append(QueryVariation(label, variant))

    return plan
