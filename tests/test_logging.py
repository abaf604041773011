"""Tests for structured logging: formatters, context propagation and component loggers."""

import io
import json
import logging

import pytest

from property_matcher.logging import ComponentLoggerAdapter, get_logger
from property_matcher.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from property_matcher.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture
def logger():
    """A bare logger for building records."""
    test_logger = logging.getLogger("property_matcher.tests")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()
    yield test_logger
    test_logger.handlers.clear()


def make_record(logger, message="Offer evaluated", extra=None):
    return logger.makeRecord("test", logging.INFO, "test.py", 1, message, (), None, extra=extra)


# ============================================================================
# Context propagation
# ============================================================================


class TestLogContext:
    """Tests for push/pop and the log_context manager."""

    def test_empty_by_default(self):
        assert get_log_context() == {}

    def test_push_and_pop(self):
        token = push_log_context(offer_id="A1", phone="966500000001")
        assert get_log_context() == {"offer_id": "A1", "phone": "966500000001"}
        pop_log_context(token)
        assert get_log_context() == {}

    def test_inner_value_overrides_outer(self):
        token1 = push_log_context(offer_id="A1")
        token2 = push_log_context(offer_id="B2")
        assert get_log_context() == {"offer_id": "B2"}
        pop_log_context(token2)
        assert get_log_context() == {"offer_id": "A1"}
        pop_log_context(token1)

    def test_nested_managers(self):
        with log_context(run_id="r1"):
            with log_context(offer_id="A1"):
                assert get_log_context() == {"run_id": "r1", "offer_id": "A1"}
            assert get_log_context() == {"run_id": "r1"}
        assert get_log_context() == {}

    def test_restored_after_exception(self):
        with pytest.raises(ValueError):
            with log_context(run_id="r1"):
                raise ValueError("boom")
        assert get_log_context() == {}

    def test_clear(self):
        push_log_context(run_id="r1")
        clear_log_context()
        assert get_log_context() == {}

    def test_returned_context_is_a_copy(self):
        with log_context(run_id="r1"):
            context = get_log_context()
            context["phone"] = "changed"
            assert get_log_context() == {"run_id": "r1"}


# ============================================================================
# Formatters and filter
# ============================================================================


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_mandatory_fields(self, logger):
        log_obj = json.loads(JSONFormatter().format(make_record(logger)))

        assert log_obj["level"] == "INFO"
        assert log_obj["message"] == "Offer evaluated"
        assert log_obj["timestamp"].endswith("Z")
        assert len(log_obj["timestamp"]) == 24
        assert "name" not in log_obj

    def test_extra_fields(self, logger):
        record = make_record(
            logger, extra={"event": "matching.evaluate.completed", "candidates": 3, "fallback": False}
        )
        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["event"] == "matching.evaluate.completed"
        assert log_obj["candidates"] == 3
        assert log_obj["fallback"] is False

    def test_arabic_text_left_unescaped(self, logger):
        output = JSONFormatter().format(make_record(logger, extra={"neighborhood": "الرابية"}))
        assert "الرابية" in output

    def test_non_json_values_are_reduced(self, logger):
        record = make_record(logger, extra={"ids": frozenset({"A1"}), "params": {"page": 1}})
        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["ids"] == ["A1"]
        assert log_obj["params"] == {"page": 1}


class TestKeyValueFormatter:
    """Tests for KeyValueFormatter."""

    @pytest.fixture
    def formatter(self):
        return KeyValueFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    def test_basic_line(self, formatter, logger):
        output = formatter.format(make_record(logger))
        assert "[INFO]" in output
        assert "Offer evaluated" in output

    def test_extras_as_pairs(self, formatter, logger):
        output = formatter.format(make_record(logger, extra={"event": "store.loaded", "clients": 12}))
        assert "event=store.loaded" in output
        assert "clients=12" in output

    def test_values_with_spaces_are_quoted(self, formatter, logger):
        output = formatter.format(make_record(logger, extra={"reason": "Property type mismatch"}))
        assert 'reason="Property type mismatch"' in output

    def test_booleans_and_none(self, formatter, logger):
        output = formatter.format(make_record(logger, extra={"recorded": True, "error": None}))
        assert "recorded=true" in output
        assert "error=null" in output


class TestContextualFilter:
    """Tests for ContextualFilter."""

    def test_adds_service_and_environment(self, logger):
        record = make_record(logger)
        ContextualFilter(service="property-matcher", environment="test").filter(record)

        assert record.service == "property-matcher"
        assert record.environment == "test"

    def test_adds_context_fields(self, logger):
        with log_context(offer_id="A1", run_id="r1"):
            record = make_record(logger)
            ContextualFilter().filter(record)

        assert record.offer_id == "A1"
        assert record.run_id == "r1"

    def test_explicit_extra_wins_over_context(self, logger):
        with log_context(phone="966500000001"):
            record = make_record(logger, extra={"phone": "966500000002"})
            ContextualFilter().filter(record)

        assert record.phone == "966500000002"


# ============================================================================
# configure_logging and component loggers
# ============================================================================


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="LOUD")

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid log format"):
            configure_logging(format_type="xml")

    @pytest.mark.parametrize("format_type, formatter_class", [("json", JSONFormatter), ("key-value", KeyValueFormatter)])
    def test_installs_formatter(self, restore_root_logger, format_type, formatter_class):
        configure_logging(level="INFO", format_type=format_type, stream=io.StringIO())

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, formatter_class)

    def test_end_to_end_json_line(self, restore_root_logger):
        stream = io.StringIO()
        configure_logging(level="INFO", format_type="json", environment="test", stream=stream)

        component_logger = get_logger("property_matcher.tests.e2e", component="store")
        with log_context(run_id="r1"):
            component_logger.info("Client store loaded", extra={"event": "store.loaded", "clients": 2})

        last = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert last["component"] == "store"
        assert last["event"] == "store.loaded"
        assert last["run_id"] == "r1"
        assert last["environment"] == "test"
        assert last["service"] == "property-matcher"


class TestGetLogger:
    """Tests for get_logger."""

    def test_plain_logger_without_fields(self):
        assert isinstance(get_logger("property_matcher.tests.plain"), logging.Logger)

    def test_adapter_merges_fields(self):
        adapter = get_logger("property_matcher.tests.adapter", component="search")
        assert isinstance(adapter, ComponentLoggerAdapter)

        _, kwargs = adapter.process("msg", {"extra": {"event": "fanout.search.completed"}})
        assert kwargs["extra"] == {"component": "search", "event": "fanout.search.completed"}
