"""Area and neighborhood name normalization.

Handles the usual ه/ة spelling slips, letter suffixes glued to the name
(الخالديةأ) and the city-versus-neighborhood distinction used to fan a
city-level request out over its neighborhoods.
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from property_matcher.logging import get_logger

logger = get_logger(__name__, component="normalization")

T = TypeVar("T")

CITY_NEIGHBORHOODS: Dict[str, List[str]] = {
    "المبرز": [
        "محاسن",
        "محاسن ارامكو",
        "الراشدية",
        "الفيصلية",
        "الناصرية",
        "العزيزية",
        "المحمدية",
        "الخالدية",
        "الصالحية",
        "المنصورة",
        "الجامعية",
        "التعاونية",
        "الروضة",
        "البستانية",
        "المطيرفية",
    ],
    "الهفوف": [
        "الكوت",
        "الحزم",
        "البندرية",
        "العيون",
        "النعاثل",
        "السلمانية",
        "العمران",
        "المثلث",
        "الملك فهد",
        "اليحيى",
        "الشهابية",
    ],
    "الاحساء": [
        "عين موسى",
        "البطالية",
        "الطرف",
        "الجفر",
        "القارة",
        "الشعبة",
        "الحليلة",
        "الدالوة",
        "أم الساهك",
        "الكلابية",
        "المنيزلة",
        "الجشة",
        "التويثير",
        "الحفيرة",
    ],
}

CITIES = tuple(CITY_NEIGHBORHOODS)

# A city request expands to at most this many of its neighborhoods
CITY_EXPANSION_LIMIT = 5

AREA_CORRECTIONS: Dict[str, str] = {
    "الخالديه": "الخالدية",
    "الخالديةأ": "الخالدية أ",
    "الخالديةب": "الخالدية ب",
    "الخالديةج": "الخالدية ج",
    "المحمديه": "المحمدية",
    "المحمديةأ": "المحمدية أ",
    "المحمديةب": "المحمدية ب",
    "الفيصليه": "الفيصلية",
    "الفيصليةأ": "الفيصلية أ",
    "الفيصليةب": "الفيصلية ب",
    "العزيزيه": "العزيزية",
    "العزيزيةأ": "العزيزية أ",
    "المنصوره": "المنصورة",
    "المنصورهأ": "المنصورة أ",
    "الراشديه": "الراشدية",
    "الراشديةأ": "الراشدية أ",
    "الصالحيه": "الصالحية",
    "الصالحيةأ": "الصالحية أ",
    "المبرزأ": "المبرز أ",
    "المبرزب": "المبرز ب",
    "الهفوفأ": "الهفوف أ",
    "الهفوفب": "الهفوف ب",
    "العمرانأ": "العمران أ",
    "العمرانب": "العمران ب",
    "المثلثأ": "المثلث أ",
    "المثلثب": "المثلث ب",
    "الملك فهدأ": "الملك فهد أ",
    "الجامعيه": "الجامعية",
    "التعاونيه": "التعاونية",
    "السلمانيه": "السلمانية",
    "الناصريه": "الناصرية",
    "الروضه": "الروضة",
    "البستانيه": "البستانية",
    "العليه": "العلية",
    "المطيرفيه": "المطيرفية",
    "اليحيه": "اليحيى",
}

VALID_AREAS = frozenset(
    {
        "الخالدية", "الخالدية أ", "الخالدية ب", "الخالدية ج",
        "المحمدية", "المحمدية أ", "المحمدية ب",
        "الفيصلية", "الفيصلية أ", "الفيصلية ب",
        "العزيزية", "العزيزية أ",
        "المنصورة", "المنصورة أ",
        "الراشدية", "الراشدية أ",
        "الصالحية", "الصالحية أ",
        "المبرز", "المبرز أ", "المبرز ب",
        "الهفوف", "الهفوف أ", "الهفوف ب",
        "العمران", "العمران أ", "العمران ب",
        "المثلث", "المثلث أ", "المثلث ب",
        "الملك فهد", "الملك فهد أ",
        "الجامعية", "التعاونية", "السلمانية", "الناصرية", "الروضة",
        "البستانية", "العلية", "المطيرفية", "اليحيى", "المزروعية", "الشهابية",
        "عين موسى", "البطالية", "الطرف", "الجفر", "القارة", "الشعبة",
        "الحليلة", "الدالوة", "أم الساهك", "الكلابية", "المنيزلة", "الجشة",
        "التويثير", "الحفيرة", "المركز",
    }
)

_WHITESPACE = re.compile(r"\s+")
_SEPARATORS = re.compile(r"[،,/\-]|\s+أو\s+")
_AND_CONNECTOR = re.compile(r"\s+و")


def normalize_area_name(area_name: Optional[str]) -> str:
    """Correct common spelling variations of an area name.

    Examples:
        >>> normalize_area_name(" الخالديه ")
        'الخالدية'
        >>> normalize_area_name("الخالديةأ")
        'الخالدية أ'
        >>> normalize_area_name("حي جديد")
        'حي جديد'
    """
    if not area_name:
        return ""

    normalized = _WHITESPACE.sub(" ", area_name).strip()
    if not normalized:
        return ""

    corrected = AREA_CORRECTIONS.get(normalized)
    if corrected:
        return corrected

    if normalized.endswith("ه"):
        with_ta_marbuta = normalized[:-1] + "ة"
        if with_ta_marbuta in VALID_AREAS:
            return with_ta_marbuta

    return normalized


def normalize_area_names(areas: Optional[Iterable[str]]) -> List[str]:
    """Normalize several names, dropping empties."""
    if not areas:
        return []
    return [name for name in (normalize_area_name(a) for a in areas) if name]


def is_city(area_name: Optional[str]) -> bool:
    """True if the name is one of the known cities rather than a neighborhood."""
    return normalize_area_name(area_name) in CITY_NEIGHBORHOODS


def neighborhoods_for_city(city_name: Optional[str]) -> List[str]:
    """All known neighborhoods of a city, or [] for anything that is not a city."""
    return list(CITY_NEIGHBORHOODS.get(normalize_area_name(city_name), []))


def expand_city_to_neighborhoods(area_name: Optional[str]) -> List[str]:
    """Expand a city to its leading neighborhoods; a neighborhood maps to itself.

    Examples:
        >>> expand_city_to_neighborhoods("الهفوف")
        ['الكوت', 'الحزم', 'البندرية', 'العيون', 'النعاثل']
        >>> expand_city_to_neighborhoods("الروضه")
        ['الروضة']
    """
    normalized = normalize_area_name(area_name)
    if not normalized:
        return []

    if normalized in CITY_NEIGHBORHOODS:
        expanded = CITY_NEIGHBORHOODS[normalized][:CITY_EXPANSION_LIMIT]
        logger.debug(
            "Expanded city to neighborhoods",
            extra={
                "event": "normalization.city.expanded",
                "city": normalized,
                "neighborhoods": expanded,
            },
        )
        return list(expanded)

    return [normalized]


def expand_areas(areas: Optional[Iterable[str]]) -> List[str]:
    """Normalize and city-expand a list of areas, preserving first-seen order."""
    seen: Dict[str, None] = {}
    for area in normalize_area_names(areas):
        for name in expand_city_to_neighborhoods(area):
            seen.setdefault(name, None)
    return list(seen)


def area_matches(location: Optional[str], requested_area: Optional[str]) -> bool:
    """Substring match in either direction after normalization.

    A result with no location at all is kept, since its area is unknown
    rather than wrong.
    """
    requested = normalize_area_name(requested_area).lower()
    if not requested:
        return True

    candidate = normalize_area_name((location or "").lower()).lower()
    return candidate == requested or requested in candidate or candidate in requested


def filter_results_by_area(
    results: Sequence[T], requested_area: Optional[str], location_of=None
) -> List[T]:
    """Keep results whose location matches the requested area.

    Args:
        results: Items to filter
        requested_area: Area the user asked for; falsy disables filtering
        location_of: Callable returning an item's location, defaults to
            ``item.location``

    Returns:
        Matching items in their original order
    """
    if not requested_area:
        return list(results)

    get_location = location_of or (lambda item: getattr(item, "location", None))
    kept = [item for item in results if area_matches(get_location(item), requested_area)]

    if len(kept) < len(results):
        logger.debug(
            "Filtered results by area",
            extra={
                "event": "normalization.area.filtered",
                "requested_area": requested_area,
                "before": len(results),
                "after": len(kept),
            },
        )

    return kept


def extract_neighborhoods(text: Optional[str]) -> List[str]:
    """Split free text into normalized neighborhood names.

    Splits on commas, slashes, dashes, "أو", and the "و" connector that
    glues names together ("البطالية وشارع الحيات").

    Example:
        >>> extract_neighborhoods("الخالديه، المحمدية أو الروضة")
        ['الخالدية', 'المحمدية', 'الروضة']
    """
    if not text:
        return []

    cleaned = re.sub(r"\*+|[()]", " ", text)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    found: Dict[str, None] = {}
    for part in _SEPARATORS.split(cleaned):
        part = (part or "").strip()
        if not part:
            continue
        for chunk in _AND_CONNECTOR.split(part):
            name = normalize_area_name(chunk)
            if len(name) > 2 and not name.isdigit():
                found.setdefault(name, None)

    return list(found)
