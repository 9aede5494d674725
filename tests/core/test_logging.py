"""Tests for cortex_db.logging module."""

import structlog

from cortex_db.logging import (
    LogContext,
    bind_context,
    configure_logging,
    get_logger,
    redact_url,
    unbind_context,
)


class TestConfigureLogging:
    def test_json_configuration(self):
        configure_logging(level="WARNING", json_format=True, service="cortex-test")
        config = structlog.get_config()
        assert isinstance(config["processors"][-1], structlog.processors.JSONRenderer)

    def test_console_configuration(self):
        configure_logging(level="DEBUG", json_format=False)
        config = structlog.get_config()
        assert isinstance(config["processors"][-1], structlog.dev.ConsoleRenderer)

    def test_get_logger(self):
        assert get_logger("cortex_db.tests") is not None


class TestContext:
    def test_bind_and_unbind(self):
        bind_context(project_id="P1")
        assert structlog.contextvars.get_contextvars()["project_id"] == "P1"
        unbind_context("project_id")
        assert "project_id" not in structlog.contextvars.get_contextvars()

    def test_log_context_is_scoped(self):
        with LogContext(collection="povs", record_id="V1"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["collection"] == "povs"
            assert bound["record_id"] == "V1"
        assert "collection" not in structlog.contextvars.get_contextvars()


class TestRedactUrl:
    def test_password_hidden(self):
        assert redact_url("postgresql://cortex:s3cret@db/cortex") == "postgresql://cortex:***@db/cortex"

    def test_without_password(self):
        assert redact_url("sqlite:///cortex.db") == "sqlite:///cortex.db"

    def test_not_a_url(self):
        assert redact_url("not a url") == "not a url"
