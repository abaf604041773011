"""Property type canonicalization.

Requests and offers spell the same kind of property many ways (بيت, منزل,
فيلا, دور ...). Every comparison, storage key and search variation goes
through the tables below so those spellings collapse to one token.
"""

from typing import List, Optional, Tuple

# First entry of each group is the canonical token.
SYNONYM_GROUPS: Tuple[Tuple[str, ...], ...] = (
    ("بيت", "منزل", "فيلا", "دور"),
    ("شقة", "شقة سكنية"),
    ("دبلكس", "شقة دبلكسية", "شقة دبلكس"),
    ("أرض", "ارض"),
    ("عمارة", "بناية"),
    ("استراحة", "شاليه"),
    ("محل", "محل تجاري"),
    ("مزرعة",),
)

# Ordered substitutes tried by the search fan-out; the first entry is the
# spelling the search endpoint matches best.
SEARCH_SYNONYMS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("بيت", ("بيت", "منزل", "دور", "فيلا")),
    ("منزل", ("بيت", "منزل", "دور", "فيلا")),
    ("فيلا", ("فيلا", "بيت", "منزل")),
    ("شقة", ("شقة", "شقة سكنية")),
    ("دبلكس", ("دبلكس", "شقة دبلكسية", "شقة دبلكس")),
    ("أرض", ("أرض", "ارض")),
    ("ارض", ("أرض", "ارض")),
    ("عمارة", ("عمارة", "بناية")),
    ("استراحة", ("استراحة", "شاليه")),
    ("محل", ("محل", "محل تجاري")),
)


def _clean(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def _related(a: str, b: str) -> bool:
    return a in b or b in a


def find_synonym_group(property_type: Optional[str]) -> Optional[Tuple[str, ...]]:
    """Return the synonym group a property type belongs to, if any.

    Matching is substring-tolerant in both directions, so "شقة سكنية كبيرة"
    still lands in the apartment group.
    """
    cleaned = _clean(property_type)
    if not cleaned:
        return None

    for group in SYNONYM_GROUPS:
        if any(_related(cleaned, synonym) for synonym in group):
            return group
    return None


def normalize_property_type(property_type: Optional[str]) -> str:
    """Map a property type to its canonical token.

    Unknown types are returned trimmed and lower-cased; empty input gives "".

    Examples:
        >>> normalize_property_type("منزل") == normalize_property_type("فيلا")
        True
        >>> normalize_property_type(" مكتب ")
        'مكتب'
    """
    group = find_synonym_group(property_type)
    if group is not None:
        return group[0]
    return _clean(property_type)


def same_property_type(a: Optional[str], b: Optional[str]) -> bool:
    """True when both types canonicalize to the same token."""
    return normalize_property_type(a) == normalize_property_type(b)


def property_type_synonyms(property_type: Optional[str]) -> List[str]:
    """Ordered search spellings for a property type.

    Falls back to the input itself when the type has no known synonyms, and
    to ``[""]`` for empty input.
    """
    cleaned = _clean(property_type)
    if not cleaned:
        return [""]

    for key, synonyms in SEARCH_SYNONYMS:
        if _related(cleaned, key):
            return list(synonyms)

    return [property_type.strip()]


def property_type_similarity(requested: Optional[str], offered: Optional[str]) -> int:
    """Score how well an offer's type satisfies a requested type (0-100).

    100 for identical (or unspecified) types, 90 for the same synonym group,
    70 when one contains the other, else 0.
    """
    req = _clean(requested)
    off = _clean(offered)
    if not req or not off:
        return 100
    if req == off:
        return 100

    for group in SYNONYM_GROUPS:
        if any(_related(req, s) for s in group) and any(_related(off, s) for s in group):
            return 90

    if _related(req, off):
        return 70

    return 0
