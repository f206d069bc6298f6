"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from quotagate.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logging_config,
)


def make_record(msg="Rate limit denied", level=logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="quotagate.test",
        level=level,
        pathname="service.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON output for log aggregation."""

    def test_standard_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "quotagate.test"
        assert data["message"] == "Rate limit denied"
        assert data["location"] == {"file": "service.py", "line": 42, "function": None}
        assert "timestamp" in data

    def test_rate_limit_context(self):
        record = make_record()
        record.identity_key = "global_api_10.0.0.1"
        record.purpose = "global_api"
        record.source = "fallback"

        data = json.loads(JSONFormatter().format(record))

        assert data["identity_key"] == "global_api_10.0.0.1"
        assert data["purpose"] == "global_api"
        assert data["source"] == "fallback"
        assert "extra" not in data

    def test_unset_context_is_omitted(self):
        record = make_record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "identity_key" not in data
        assert "request_id" not in data

    def test_other_extras_grouped(self):
        record = make_record()
        record.store = "database"

        data = json.loads(JSONFormatter().format(record))
        assert data["extra"] == {"store": "database"}

    def test_exception(self):
        try:
            raise ConnectionError("redis down")
        except ConnectionError:
            record = make_record("Store failed", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert "ConnectionError: redis down" in "".join(data["exception"])


class TestContextFilter:
    """Test default context fields."""

    def test_adds_defaults(self):
        record = make_record()
        assert ContextFilter().filter(record) is True
        for field in ("request_id", "identity_key", "purpose", "source", "path", "method", "status_code"):
            assert getattr(record, field) is None

    def test_keeps_existing_values(self):
        record = make_record()
        record.source = "redis"
        ContextFilter().filter(record)
        assert record.source == "redis"


class TestGetLoggingConfig:
    """Test dictConfig generation from settings."""

    def test_text_format(self):
        with patch("quotagate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "info"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "standard"
        assert config["handlers"]["console"]["level"] == "INFO"
        assert "json" not in config["formatters"]

    def test_json_format(self):
        with patch("quotagate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "JSON"
            mock_settings.log_level = "WARNING"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"] == "quotagate.app.core.logging.JSONFormatter"
        assert config["loggers"]["quotagate"]["propagate"] is False

    def test_structured_format_includes_context(self):
        with patch("quotagate.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "DEBUG"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert "identity_key=%(identity_key)s" in config["formatters"]["structured"]["format"]


def test_get_log_context_drops_none():
    assert get_log_context(identity_key="chat_u1", source=None, attempt=2) == {
        "identity_key": "chat_u1",
        "attempt": 2,
    }
