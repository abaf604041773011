"""Unit tests for the matching engine: gates, bookkeeping and statistics."""

from unittest.mock import patch

import pytest

from property_matcher.domain.models import RequestStatus, Requirement, UserResponse
from property_matcher.matching import MatchingEngine
from property_matcher.matching.similarity import calculate_similarity
from property_matcher.persistence import ClientStore, InMemoryBackend
from tests.helpers import PHONE, FakeClock, apartment_offer, searcher_record

OTHER = "966500000002"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_engine(clock):
    """Build an engine over an in-memory store seeded with the given records."""

    def _make(*records, **kwargs):
        store = ClientStore(InMemoryBackend({r["phoneNumber"]: r for r in records}), clock=clock)
        store.load()
        return MatchingEngine(store, clock=clock, **kwargs)

    return _make


def send(engine, offer, phone=PHONE):
    """Score the offer for the client's first request and record it as delivered."""
    requirement = Requirement.from_request(engine.store.get(phone).requests[0])
    return engine.record_match_sent(phone, offer, calculate_similarity(requirement, offer))


# ============================================================================
# evaluate
# ============================================================================


class TestEvaluate:
    """Tests for MatchingEngine.evaluate."""

    def test_matching_offer_produces_candidate(self, make_engine):
        engine = make_engine(searcher_record())

        candidates = engine.evaluate(apartment_offer())

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.phone_number == PHONE
        assert candidate.name == "أبو محمد"
        assert candidate.request_id == f"req_{PHONE}"
        assert candidate.similarity.score == 100
        assert candidate.requirement.neighborhoods == ["الرابية"]

    def test_evaluate_has_no_side_effects(self, make_engine):
        engine = make_engine(searcher_record())

        engine.evaluate(apartment_offer())

        client = engine.store.get(PHONE)
        assert client.match_history == []
        assert client.last_notification_at is None

    def test_below_threshold_excluded(self, make_engine):
        engine = make_engine(searcher_record())
        assert engine.evaluate(apartment_offer(price_amount=2000000, location="النسيم")) == []

    def test_type_mismatch_excluded(self, make_engine):
        engine = make_engine(searcher_record())
        assert engine.evaluate(apartment_offer(category="أرض")) == []

    def test_threshold_is_configurable(self, make_engine):
        offer = apartment_offer(price_amount=300000)

        assert make_engine(searcher_record(), threshold=85).evaluate(offer) == []
        assert len(make_engine(searcher_record(), threshold=80).evaluate(offer)) == 1

    def test_duplicate_offer_excluded(self, make_engine):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer())

        assert engine.evaluate(apartment_offer()) == []

    def test_rate_limit_boundary(self, make_engine, clock):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer("A1"))

        clock.advance(minutes=59)
        assert engine.evaluate(apartment_offer("B2")) == []

        clock.advance(minutes=1)
        assert [c.phone_number for c in engine.evaluate(apartment_offer("B2"))] == [PHONE]

    def test_rate_limit_is_per_client(self, make_engine):
        engine = make_engine(searcher_record(), searcher_record(OTHER))
        send(engine, apartment_offer("A1"))

        assert [c.phone_number for c in engine.evaluate(apartment_offer("B2"))] == [OTHER]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"requestStatus": "inactive"},
            {"role": "مالك"},
            {"state": "awaiting_requirements"},
            {"request": {"status": "inactive"}},
        ],
    )
    def test_ineligible_clients_skipped(self, make_engine, overrides):
        engine = make_engine(searcher_record(**overrides))
        assert engine.evaluate(apartment_offer()) == []

    def test_legacy_requirements_are_matched(self, make_engine):
        legacy = searcher_record()
        del legacy["requests"]
        legacy["requirements"] = {"propertyType": "شقة", "priceMin": 400000, "priceMax": 500000, "neighborhoods": ["الرابية"]}
        engine = make_engine(legacy)

        candidates = engine.evaluate(apartment_offer())

        assert [c.request_id for c in candidates] == [f"req_legacy_{PHONE}"]

    def test_scoring_error_skips_only_that_request(self, make_engine):
        engine = make_engine(searcher_record(), searcher_record(OTHER))
        offer = apartment_offer()
        good = calculate_similarity(Requirement.from_request(engine.store.get(OTHER).requests[0]), offer)

        with patch(
            "property_matcher.matching.engine.calculate_similarity",
            side_effect=[RuntimeError("boom"), good],
        ):
            candidates = engine.evaluate(offer)

        assert [c.phone_number for c in candidates] == [OTHER]

    def test_worklist_item_shape(self, make_engine):
        item = make_engine(searcher_record()).evaluate(apartment_offer())[0].to_worklist_item()

        assert item["phoneNumber"] == PHONE
        assert item["requestId"] == f"req_{PHONE}"
        assert item["offer"]["id"] == "A1"
        assert item["similarity"]["score"] == 100
        assert item["similarity"]["matchQuality"] == "🟢 ممتاز"


# ============================================================================
# Bookkeeping
# ============================================================================


class TestRecordMatchSent:
    """Tests for record_match_sent."""

    def test_appends_history_and_stamps_time(self, make_engine, clock):
        engine = make_engine(searcher_record())

        client = send(engine, apartment_offer())

        assert client.last_notification_at == clock.now
        record = client.find_match("A1")
        assert record.offer_title == "شقة للبيع في الرابية"
        assert record.offer_link == "https://masaak.com/?p=A1"
        assert record.similarity_score == 100
        assert record.match_quality == "🟢 ممتاز"
        assert record.sent_at == clock.now

    def test_persisted_in_camel_case(self, make_engine):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer())

        persisted = engine.store.backend.read_all()[PHONE]
        assert persisted["matchHistory"][0]["offerId"] == "A1"
        assert persisted["lastNotificationAt"] == "2025-11-04T12:00:00.000Z"

    def test_untitled_offer_gets_default_title(self, make_engine):
        engine = make_engine(searcher_record())
        offer = apartment_offer().model_copy(update={"title": ""})

        client = send(engine, offer)

        assert client.find_match("A1").offer_title == "عقار"


class TestActivation:
    """Tests for mark_inactive and reactivate."""

    def test_mark_inactive(self, make_engine, clock):
        engine = make_engine(searcher_record())

        client = engine.mark_inactive(PHONE, reason="found_property")

        assert client.request_status == RequestStatus.INACTIVE
        assert client.request_deactivated_at == clock.now
        assert client.request_deactivation_reason == "found_property"
        assert engine.evaluate(apartment_offer()) == []

    def test_reactivate(self, make_engine):
        engine = make_engine(searcher_record())
        engine.mark_inactive(PHONE)

        client = engine.reactivate(PHONE)

        assert client.request_status == RequestStatus.ACTIVE
        assert client.request_deactivated_at is None
        assert client.request_deactivation_reason is None
        assert len(engine.evaluate(apartment_offer())) == 1


class TestRecordInteraction:
    """Tests for record_interaction."""

    def test_sets_response_and_flag(self, make_engine, clock):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer())
        clock.advance(minutes=5)

        assert engine.record_interaction(PHONE, "A1", UserResponse.CONTACTED) is True

        record = engine.store.get(PHONE).find_match("A1")
        assert record.user_response == UserResponse.CONTACTED
        assert record.contacted is True
        assert record.opened is False
        assert record.interaction_at == clock.now

    def test_accepts_plain_string(self, make_engine):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer())

        assert engine.record_interaction(PHONE, "A1", "rejected") is True
        assert engine.store.get(PHONE).find_match("A1").rejected is True

    def test_unknown_offer(self, make_engine):
        engine = make_engine(searcher_record())
        assert engine.record_interaction(PHONE, "nope", UserResponse.OPENED) is False

    def test_unknown_client(self, make_engine):
        engine = make_engine()
        assert engine.record_interaction(OTHER, "A1", UserResponse.OPENED) is False

    def test_invalid_response(self, make_engine):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer())

        with pytest.raises(ValueError):
            engine.record_interaction(PHONE, "A1", "liked")


# ============================================================================
# Statistics
# ============================================================================


class TestStatistics:
    """Tests for interaction and matching statistics."""

    def test_interaction_stats(self, make_engine, clock):
        engine = make_engine(searcher_record(), searcher_record(OTHER))
        send(engine, apartment_offer("A1"))
        send(engine, apartment_offer("A1"), phone=OTHER)
        send(engine, apartment_offer("B2", price_amount=300000), phone=OTHER)
        engine.record_interaction(PHONE, "A1", UserResponse.OPENED)
        engine.record_interaction(OTHER, "A1", UserResponse.REJECTED)

        clock.advance(hours=25)
        stats = engine.get_interaction_stats()

        assert stats.total_matches == 3
        assert stats.opened == 1
        assert stats.rejected == 1
        assert stats.contacted == 0
        assert stats.ignored == 1
        assert stats.avg_score_opened == 100
        assert stats.avg_score_rejected == 100
        assert stats.avg_score_contacted == 0

    def test_recent_matches_are_not_ignored(self, make_engine, clock):
        engine = make_engine(searcher_record())
        send(engine, apartment_offer())

        clock.advance(hours=23)

        assert engine.get_interaction_stats().ignored == 0

    def test_matching_stats(self, make_engine, clock):
        engine = make_engine(
            searcher_record(),
            searcher_record(OTHER, requestStatus="inactive"),
            searcher_record("966500000003", role="مالك"),
        )
        send(engine, apartment_offer())

        stats = engine.get_matching_stats()

        assert stats.total_requests == 2
        assert stats.active_requests == 1
        assert stats.inactive_requests == 1
        assert stats.active_percentage == 50
        assert stats.total_matches == 1
        assert stats.matches_last_24h == 1

        clock.advance(hours=25)
        assert engine.get_matching_stats().matches_last_24h == 0

    def test_empty_store(self, make_engine):
        engine = make_engine()
        assert engine.get_matching_stats().to_dict()["active_percentage"] == 0
        assert engine.get_interaction_stats().to_dict()["total_matches"] == 0
