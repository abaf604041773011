"""Unit tests for domain models: persisted client layout, offers and requirements."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from property_matcher.domain.models import (
    Client,
    ConversationState,
    MatchRecord,
    Offer,
    OfferMeta,
    PropertyRequest,
    RequestStatus,
    Requirement,
    Role,
    SearchResult,
    UserResponse,
)

NOON = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def client_record():
    """A persisted client record in the current multi-request layout."""
    return {
        "phoneNumber": "966500000001",
        "name": "أبو محمد",
        "role": "باحث",
        "state": "completed",
        "requests": [
            {
                "id": "req_1762257600000_a1b2",
                "propertyType": "شقة",
                "purpose": "شراء",
                "priceMin": 400000,
                "priceMax": "500,000",
                "neighborhoods": ["الرابية", " ", "النسيم"],
                "status": "active",
                "createdAt": 1762257600000,
                "updatedAt": "2025-11-04T12:00:00.000Z",
            }
        ],
        "requestStatus": "active",
        "matchHistory": [
            {
                "offerId": 123,
                "offerTitle": "شقة للبيع",
                "similarityScore": 85.4,
                "sentAt": "2025-11-04T12:00:00.000Z",
                "userResponse": "opened",
                "opened": True,
            }
        ],
        "lastNotificationAt": 1762257600000,
        "isProtected": False,
        "manuallyAdded": False,
        "botVersion": "2.3",
    }


class TestClient:
    """Tests for the Client model and its persisted layout."""

    def test_parse_current_layout(self, client_record):
        client = Client.model_validate(client_record)

        assert client.phone_number == "966500000001"
        assert client.role == Role.SEARCHER
        assert client.state == ConversationState.COMPLETED
        assert client.last_notification_at == NOON
        assert client.is_protected is False

        request = client.requests[0]
        assert request.price_min == 400000
        assert request.price_max == 500000
        assert request.neighborhoods == ["الرابية", "النسيم"]
        assert request.created_at == NOON
        assert request.is_active

        match = client.match_history[0]
        assert match.offer_id == "123"
        assert match.similarity_score == 85
        assert match.user_response == UserResponse.OPENED

    def test_round_trip_keeps_camel_case_and_unknown_keys(self, client_record):
        record = Client.model_validate(client_record).to_record()

        assert record["phoneNumber"] == "966500000001"
        assert record["requestStatus"] == "active"
        assert record["lastNotificationAt"] == "2025-11-04T12:00:00.000Z"
        assert record["matchHistory"][0]["offerId"] == "123"
        assert record["requests"][0]["priceMax"] == 500000
        assert record["botVersion"] == "2.3"

    def test_legacy_requirements_migrated_to_one_request(self):
        client = Client.model_validate(
            {
                "phoneNumber": "966500000002",
                "role": "باحث",
                "state": "completed",
                "requirements": {"propertyType": "بيت", "priceMax": 900000},
            }
        )

        assert len(client.requests) == 1
        assert client.requests[0].id == "req_legacy_966500000002"
        assert client.requests[0].property_type == "بيت"
        assert client.requests[0].status == RequestStatus.ACTIVE

    def test_legacy_migration_inherits_inactive_status(self):
        client = Client.model_validate(
            {
                "phoneNumber": "966500000002",
                "requirements": {"propertyType": "بيت"},
                "requestStatus": "inactive",
            }
        )
        assert client.requests[0].status == RequestStatus.INACTIVE

    def test_requests_list_wins_over_legacy_requirements(self, client_record):
        client_record["requirements"] = {"propertyType": "أرض"}
        client = Client.model_validate(client_record)

        assert [r.property_type for r in client.requests] == ["شقة"]

    def test_malformed_entries_dropped(self, client_record):
        client_record["requests"].append({"propertyType": "أرض"})
        client_record["matchHistory"].append({"offerTitle": "no id"})

        client = Client.model_validate(client_record)

        assert len(client.requests) == 1
        assert len(client.match_history) == 1

    @pytest.mark.parametrize("role, expected", [("searcher", Role.SEARCHER), ("مالك", Role.OWNER), ("alien", None), ("", None)])
    def test_role_coercion(self, role, expected):
        client = Client.model_validate({"phoneNumber": "1", "role": role})
        assert client.role == expected

    def test_unknown_state_reads_as_initial(self):
        client = Client.model_validate({"phoneNumber": "1", "state": "dancing"})
        assert client.state == ConversationState.INITIAL

    @pytest.mark.parametrize("status, expected", [("inactive", RequestStatus.INACTIVE), ("paused", RequestStatus.ACTIVE), (None, RequestStatus.ACTIVE)])
    def test_only_inactive_is_inactive(self, status, expected):
        client = Client.model_validate({"phoneNumber": "1", "requestStatus": status})
        assert client.request_status == expected

    def test_new_client_defaults_protected(self):
        client = Client(phone_number="966500000003")
        assert client.is_protected is True
        assert client.manually_added is True
        assert client.request_status == RequestStatus.ACTIVE

    def test_phone_required(self):
        with pytest.raises(ValidationError):
            Client.model_validate({"phoneNumber": ""})

    def test_matched_offer_ids_and_find_match(self, client_record):
        client = Client.model_validate(client_record)

        assert client.matched_offer_ids() == frozenset({"123"})
        assert client.find_match(123).offer_title == "شقة للبيع"
        assert client.find_match("999") is None


class TestMatchRecord:
    """Tests for MatchRecord."""

    def test_defaults(self):
        record = MatchRecord(offer_id="A1", offer_title="")
        assert record.offer_title == "عقار"
        assert record.user_response is None
        assert record.opened is False

    def test_unknown_response_ignored(self):
        record = MatchRecord.model_validate({"offerId": "A1", "userResponse": "loved-it"})
        assert record.user_response is None


class TestOfferMeta:
    """Inbound offers spell the same field several ways."""

    def test_primary_keys(self):
        meta = OfferMeta.model_validate(
            {
                "price_amount": "450,000",
                "arc_space": 200,
                "location": "الرابية",
                "City": "الهفوف",
                "arc_category": "شقة",
                "offer_type": "بيع",
            }
        )

        assert meta.price == 450000
        assert meta.area == 200
        assert meta.neighborhood == "الرابية"
        assert meta.city == "الهفوف"
        assert meta.category == "شقة"
        assert meta.purpose == "بيع"
        assert meta.location_text == "الرابية الهفوف"

    def test_fallback_keys(self):
        meta = OfferMeta.model_validate(
            {"price": 300000, "area": 150, "district": "النسيم", "parent_catt": "بيت", "order_type": "إيجار"}
        )

        assert meta.price == 300000
        assert meta.area == 150
        assert meta.neighborhood == "النسيم"
        assert meta.category == "بيت"
        assert meta.purpose == "إيجار"

    def test_first_non_empty_wins(self):
        meta = OfferMeta.model_validate({"price_amount": 0, "price": 250000, "arc_space": "", "area": 90})
        assert meta.price == 250000
        assert meta.area == 90

    @pytest.mark.parametrize("value", [None, "", "غير محدد", -5, 0])
    def test_unusable_numbers_are_unknown(self, value):
        assert OfferMeta.model_validate({"price_amount": value}).price is None


class TestOffer:
    """Tests for Offer."""

    def test_rendered_title(self):
        offer = Offer.model_validate({"id": 42, "title": {"rendered": " شقة للبيع "}})
        assert offer.id == "42"
        assert offer.title == "شقة للبيع"

    def test_missing_meta(self):
        offer = Offer.model_validate({"id": "A1", "meta": None})
        assert offer.meta.price is None
        assert offer.location is None

    def test_location_falls_back_to_city(self):
        offer = Offer.model_validate({"id": "A1", "meta": {"City": "المبرز"}})
        assert offer.location == "المبرز"

    def test_id_required(self):
        with pytest.raises(ValidationError):
            Offer.model_validate({"id": " "})


class TestRequirement:
    """Tests for Requirement."""

    def test_from_request(self):
        request = PropertyRequest.model_validate(
            {
                "id": "req_1",
                "propertyType": "شقة",
                "subCategory": "دور أرضي",
                "purpose": "إيجار",
                "priceMax": 40000,
                "neighborhoods": ["الرابية"],
            }
        )

        requirement = Requirement.from_request(request)

        assert requirement.property_type == "شقة"
        assert requirement.sub_category == "دور أرضي"
        assert requirement.price_max == 40000
        assert requirement.neighborhoods == ["الرابية"]
        assert requirement.is_rent

    def test_sale_is_not_rent(self):
        assert not Requirement(purpose="شراء").is_rent
        assert not Requirement().is_rent

    def test_string_neighborhood_becomes_list(self):
        assert Requirement(neighborhoods="الرابية").neighborhoods == ["الرابية"]


def test_search_result_id():
    result = SearchResult(offer=Offer(id="A1"))
    assert result.id == "A1"
    assert result.is_fallback is False
    assert result.relevance_score is None
