"""Unit tests for match message rendering and dispatch."""

from unittest.mock import Mock, patch

import pytest

from property_matcher.config.models import NotificationConfig
from property_matcher.domain.models import Offer
from property_matcher.matching import MatchingEngine
from property_matcher.notifications import (
    DispatchResult,
    MessageRenderer,
    NotificationDispatcher,
    NotificationTemplateError,
    build_message_context,
    match_reasons,
)
from property_matcher.notifications.payloads import format_area, format_location, format_price, offer_link
from property_matcher.persistence import ClientStore, InMemoryBackend, StorageWriteError
from tests.helpers import (
    PHONE,
    FailingSender,
    FakeClock,
    RecordingSender,
    apartment_offer,
    make_candidate,
    searcher_record,
)


@pytest.fixture
def engine():
    clock = FakeClock()
    store = ClientStore(InMemoryBackend({PHONE: searcher_record()}), clock=clock)
    store.load()
    return MatchingEngine(store, clock=clock)


# ============================================================================
# Message context
# ============================================================================


class TestFormatting:
    """Tests for the display helpers."""

    def test_price_prefers_listing_text(self):
        assert format_price(apartment_offer(price_text="450,000 ريال")) == "450,000 ريال"

    def test_price_from_number(self):
        assert format_price(apartment_offer()) == "450000"

    def test_price_unknown(self):
        assert format_price(Offer(id="X")) == "السعر عند التواصل"

    def test_area_gets_unit(self):
        assert format_area(apartment_offer()) == "200 متر"

    def test_area_text_with_unit_kept(self):
        assert format_area(apartment_offer(area_text="200 م²")) == "200 م²"

    def test_area_unknown(self):
        assert format_area(Offer(id="X")) == "غير محدد"

    def test_location_falls_back_to_city(self):
        assert format_location(Offer(id="X", meta={"City": "الهفوف"})) == "الهفوف"
        assert format_location(Offer(id="X")) == "الموقع غير محدد"

    def test_link_defaults_to_offer_page(self):
        assert offer_link(Offer(id="1201")) == "https://masaak.com/?p=1201"
        assert offer_link(apartment_offer()) == "https://masaak.com/?p=A1"


class TestMatchReasons:
    """Tests for match_reasons."""

    def test_strong_scores(self):
        assert match_reasons({"price": 100, "area": 95, "location": 90}) == [
            "السعر مناسب جداً",
            "المساحة مثالية",
            "في حيك المفضل",
        ]

    def test_good_scores(self):
        assert match_reasons({"price": 75, "area": 70, "location": 89}) == [
            "السعر قريب من ميزانيتك",
            "المساحة مناسبة",
            "في منطقة قريبة",
        ]

    def test_weak_scores_omitted(self):
        assert match_reasons({"price": 69, "area": 10, "location": 0}) == []

    def test_custom_good_threshold(self):
        assert match_reasons({"price": 65}, good_threshold=60) == ["السعر قريب من ميزانيتك"]


class TestBuildMessageContext:
    """Tests for build_message_context."""

    def test_context(self):
        context = build_message_context(make_candidate())

        assert context["name"] == "أبو محمد"
        assert context["title"] == "شقة للبيع في الرابية"
        assert context["category"] == "عقار"
        assert context["price"] == "450000"
        assert context["location"] == "الرابية"
        assert context["score"] == 100
        assert len(context["reasons"]) == 3

    def test_anonymous_client(self):
        assert build_message_context(make_candidate(name=None))["name"] == "عميلنا العزيز"


# ============================================================================
# Rendering
# ============================================================================


class TestMessageRenderer:
    """Tests for MessageRenderer."""

    def test_renders_match_alert(self):
        text = MessageRenderer().render(build_message_context(make_candidate()))

        assert text.startswith("*أبو محمد، وجدنا عقار يناسب طلبك!* 🟢 ممتاز")
        assert "💰 *السعر:* 450000" in text
        assert "📏 *المساحة:* 200 متر" in text
        assert "📍 *الموقع:* الرابية" in text
        assert "✨ *نسبة التطابق:* 100%" in text
        assert "• السعر مناسب جداً" in text
        assert "🔗 *التفاصيل:* https://masaak.com/?p=A1" in text
        assert text.endswith("(نعم/لا)")

    def test_no_reason_lines_without_reasons(self):
        candidate = make_candidate(breakdown={"price": 0, "area": 0, "location": 0})
        text = MessageRenderer().render(build_message_context(candidate))
        assert "•" not in text

    def test_missing_variable_raises(self):
        with pytest.raises(NotificationTemplateError, match="Template rendering failed"):
            MessageRenderer().render({"name": "x"})

    def test_missing_template_raises(self):
        with pytest.raises(NotificationTemplateError):
            MessageRenderer(template_name="missing.txt.j2").render({})


# ============================================================================
# Dispatch
# ============================================================================


class TestNotificationDispatcher:
    """Tests for NotificationDispatcher."""

    def test_successful_dispatch_records_match(self, engine):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(engine, sender)

        result = dispatcher.dispatch(make_candidate())

        assert result == DispatchResult(PHONE, "A1", status="sent", recorded=True)
        assert result.is_success()
        assert len(sender.sent) == 1
        assert sender.sent[0][0] == PHONE
        assert engine.store.get(PHONE).find_match("A1") is not None

    def test_from_config_uses_good_threshold(self, engine):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher.from_config(engine, sender, NotificationConfig(good_threshold=95))

        assert dispatcher.good_threshold == 95
        assert dispatcher.sender is sender

    def test_duplicate_not_resent(self, engine):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(engine, sender)
        dispatcher.dispatch(make_candidate())

        result = dispatcher.dispatch(make_candidate())

        assert result.status == "duplicate"
        assert len(sender.sent) == 1

    def test_failed_delivery_records_nothing(self, engine):
        sender = FailingSender("gateway timeout")

        result = NotificationDispatcher(engine, sender).dispatch(make_candidate())

        assert result.status == "failed"
        assert result.error == "gateway timeout"
        assert result.recorded is False
        assert sender.attempts == 1
        client = engine.store.get(PHONE)
        assert client.match_history == []
        assert client.last_notification_at is None

    def test_render_failure_sends_nothing(self, engine):
        sender = RecordingSender()
        renderer = Mock(spec=MessageRenderer)
        renderer.render.side_effect = NotificationTemplateError("bad template")

        result = NotificationDispatcher(engine, sender, renderer=renderer).dispatch(make_candidate())

        assert result.status == "failed"
        assert sender.sent == []

    def test_recording_failure_reported(self, engine):
        with patch.object(engine, "record_match_sent", side_effect=StorageWriteError("disk full")):
            result = NotificationDispatcher(engine, RecordingSender()).dispatch(make_candidate())

        assert result.status == "sent"
        assert result.recorded is False
        assert "disk full" in result.error

    def test_dispatch_all_continues_past_errors(self, engine):
        sender = RecordingSender()
        dispatcher = NotificationDispatcher(engine, sender)
        broken = make_candidate()
        good = make_candidate(offer=apartment_offer("B2"))

        with patch.object(
            dispatcher, "dispatch", side_effect=[RuntimeError("boom"), DispatchResult(PHONE, "B2", status="sent")]
        ):
            results = dispatcher.dispatch_all([broken, good])

        assert [r.status for r in results] == ["failed", "sent"]
        assert results[0].error == "boom"
