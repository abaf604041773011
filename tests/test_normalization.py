"""Unit tests for property type and area name normalization."""

import pytest

from property_matcher.domain.models import Offer
from property_matcher.normalization import (
    area_matches,
    expand_areas,
    expand_city_to_neighborhoods,
    extract_neighborhoods,
    filter_results_by_area,
    find_synonym_group,
    is_city,
    neighborhoods_for_city,
    normalize_area_name,
    normalize_property_type,
    property_type_similarity,
    property_type_synonyms,
    same_property_type,
)


# ============================================================================
# Property types
# ============================================================================


class TestPropertyTypes:
    """Tests for canonical property types."""

    @pytest.mark.parametrize("raw", ["بيت", "منزل", "فيلا", "دور", " منزل "])
    def test_house_synonyms_collapse(self, raw):
        assert normalize_property_type(raw) == "بيت"

    def test_apartment_group_is_substring_tolerant(self):
        assert normalize_property_type("شقة سكنية كبيرة") == "شقة"

    def test_unknown_type_trimmed(self):
        assert normalize_property_type(" مكتب ") == "مكتب"

    def test_empty(self):
        assert normalize_property_type(None) == ""
        assert find_synonym_group("") is None

    def test_same_property_type(self):
        assert same_property_type("منزل", "فيلا")
        assert not same_property_type("شقة", "أرض")

    def test_synonyms_for_search(self):
        assert property_type_synonyms("بيت") == ["بيت", "منزل", "دور", "فيلا"]
        assert property_type_synonyms("ارض") == ["أرض", "ارض"]
        assert property_type_synonyms("مكتب") == ["مكتب"]
        assert property_type_synonyms("") == [""]


class TestPropertyTypeSimilarity:
    """Tests for property_type_similarity."""

    @pytest.mark.parametrize(
        "requested, offered, expected",
        [
            ("شقة", "شقة", 100),
            ("شقة", None, 100),
            (None, "أرض", 100),
            ("بيت", "فيلا", 90),
            ("أرض", "ارض", 90),
            ("مكتب", "مكتب تجاري", 70),
            ("شقة", "أرض", 0),
        ],
    )
    def test_scores(self, requested, offered, expected):
        assert property_type_similarity(requested, offered) == expected


# ============================================================================
# Areas
# ============================================================================


class TestAreaNames:
    """Tests for area name normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (" الخالديه ", "الخالدية"),
            ("الخالديةأ", "الخالدية أ"),
            ("الروضه", "الروضة"),
            ("الملك  فهد", "الملك فهد"),
            ("حي جديد", "حي جديد"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize_area_name(self, raw, expected):
        assert normalize_area_name(raw) == expected

    def test_unknown_ta_marbuta_left_alone(self):
        assert normalize_area_name("المزرعه") == "المزرعه"

    def test_is_city(self):
        assert is_city("الهفوف")
        assert not is_city("الروضة")

    def test_neighborhoods_for_city(self):
        assert "الروضة" in neighborhoods_for_city("المبرز")
        assert neighborhoods_for_city("الروضة") == []


class TestCityExpansion:
    """A city-level request fans out over its leading neighborhoods."""

    def test_city_expands_to_five(self):
        assert expand_city_to_neighborhoods("الهفوف") == ["الكوت", "الحزم", "البندرية", "العيون", "النعاثل"]

    def test_neighborhood_maps_to_itself(self):
        assert expand_city_to_neighborhoods("الروضه") == ["الروضة"]

    def test_expand_areas_dedupes_in_order(self):
        assert expand_areas(["الرابية", "الروضه", "الروضة"]) == ["الرابية", "الروضة"]

    def test_expand_areas_empty(self):
        assert expand_areas(None) == []
        assert expand_areas(["", " "]) == []


class TestAreaFiltering:
    """Tests for area_matches and filter_results_by_area."""

    @pytest.mark.parametrize(
        "location, requested, expected",
        [
            ("الروضة", "الروضه", True),
            ("حي الروضة الهفوف", "الروضة", True),
            ("الروضة", "", True),
            (None, "الروضة", True),
            ("النسيم", "الروضة", False),
        ],
    )
    def test_area_matches(self, location, requested, expected):
        assert area_matches(location, requested) is expected

    def test_filter_offers(self):
        offers = [
            Offer(id="1", meta={"location": "الروضة"}),
            Offer(id="2", meta={"location": "النسيم"}),
            Offer(id="3"),
        ]

        kept = filter_results_by_area(offers, "الروضة")

        assert [o.id for o in kept] == ["1", "3"]

    def test_no_requested_area_keeps_everything(self):
        offers = [Offer(id="1"), Offer(id="2")]
        assert filter_results_by_area(offers, None) == offers

    def test_custom_location_getter(self):
        rows = [{"loc": "الروضة"}, {"loc": "النسيم"}]
        kept = filter_results_by_area(rows, "النسيم", location_of=lambda r: r["loc"])
        assert kept == [{"loc": "النسيم"}]


class TestExtractNeighborhoods:
    """Tests for splitting free text into neighborhood names."""

    def test_separators(self):
        assert extract_neighborhoods("الخالديه، المحمدية أو الروضة") == ["الخالدية", "المحمدية", "الروضة"]

    def test_and_connector(self):
        assert extract_neighborhoods("البطالية والجفر") == ["البطالية", "الجفر"]

    def test_noise_dropped(self):
        assert extract_neighborhoods("*الروضة* / 12 / (النسيم)") == ["الروضة", "النسيم"]

    def test_empty(self):
        assert extract_neighborhoods(None) == []
