"""
Tests for the logging module.

Tests verify:
- LogContext binds and unbinds structlog context variables
- The service name is added to every event
"""

import pytest
import structlog
from structlog.testing import capture_logs

from sheetserver.core.logging import (
    LogContext,
    _add_service_metadata,
    bind_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture(autouse=True)
def _default_structlog():
    # configure_logging caches level-filtered loggers on first use.
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


class TestLogContext:
    def setup_method(self):
        structlog.contextvars.clear_contextvars()

    def teardown_method(self):
        structlog.contextvars.clear_contextvars()

    def test_scoped(self):
        with LogContext(request_id="abc123"):
            assert structlog.contextvars.get_contextvars() == {"request_id": "abc123"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_bind_unbind(self):
        bind_context(spreadsheet_id="7b", user="amy")
        unbind_context("user")
        assert structlog.contextvars.get_contextvars() == {"spreadsheet_id": "7b"}


class TestConfigure:
    def test_service_metadata(self):
        configure_logging(level="DEBUG", json_format=True, service="sheet-test")
        try:
            assert _add_service_metadata(None, "info", {})["service"] == "sheet-test"
        finally:
            configure_logging(level="WARNING", json_format=True)

    def test_events_have_keyword_values(self):
        with capture_logs() as logs:
            get_logger("sheetserver.test").info("tenant.created", spreadsheet_id="7b")
        assert logs == [{"event": "tenant.created", "spreadsheet_id": "7b", "log_level": "info"}]
