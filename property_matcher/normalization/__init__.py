"""Canonicalization of property types and area names.

Used for request storage keying (one active request per canonical type),
search fan-out and similarity scoring.
"""

from .areas import (
    CITIES,
    CITY_NEIGHBORHOODS,
    area_matches,
    expand_areas,
    expand_city_to_neighborhoods,
    extract_neighborhoods,
    filter_results_by_area,
    is_city,
    neighborhoods_for_city,
    normalize_area_name,
    normalize_area_names,
)
from .property_types import (
    SYNONYM_GROUPS,
    find_synonym_group,
    normalize_property_type,
    property_type_similarity,
    property_type_synonyms,
    same_property_type,
)

__all__ = [
    # Property types
    "SYNONYM_GROUPS",
    "find_synonym_group",
    "normalize_property_type",
    "same_property_type",
    "property_type_synonyms",
    "property_type_similarity",
    # Areas
    "CITIES",
    "CITY_NEIGHBORHOODS",
    "normalize_area_name",
    "normalize_area_names",
    "is_city",
    "neighborhoods_for_city",
    "expand_city_to_neighborhoods",
    "expand_areas",
    "area_matches",
    "filter_results_by_area",
    "extract_neighborhoods",
]
