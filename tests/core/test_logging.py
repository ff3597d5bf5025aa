"""Tests for structlog configuration helpers."""

import structlog
from structlog.testing import capture_logs

from ticker_spine.core.logging import LogContext, configure_logging, get_logger


class TestConfigureLogging:
    def test_json_renderer_selected(self):
        configure_logging(level="DEBUG", json_format=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_selected(self):
        configure_logging(level="INFO", json_format=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestLogContext:
    def test_binds_and_unbinds(self):
        with LogContext(run_id="abc123"):
            assert structlog.contextvars.get_contextvars()["run_id"] == "abc123"
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_events_carry_fields(self):
        logger = get_logger("tests.logging")
        with capture_logs() as logs:
            logger.info("prices.fetched", symbol="VOD.L", count=3)
        assert logs == [
            {"event": "prices.fetched", "symbol": "VOD.L", "count": 3, "log_level": "info"}
        ]
