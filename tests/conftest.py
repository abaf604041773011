"""Shared pytest fixtures."""

import logging

import pytest

from property_matcher.logging.context import clear_log_context

OVERRIDE_VARIABLES = ("CLIENTS_FILE", "DATABASE_URL", "SEARCH_API_URL", "LOG_LEVEL", "ENVIRONMENT")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep deployment overrides from the developer's shell out of tests."""
    for name in OVERRIDE_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def write_config(tmp_path):
    """Write YAML text to a config file and return its path."""

    def _write(text: str, name: str = "config.yaml"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def restore_root_logger():
    """Put back the root logger handlers that configure_logging replaces."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
