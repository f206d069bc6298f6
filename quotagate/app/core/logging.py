"""Structured logging configuration for quotagate.

Uses Python's standard logging module, with JSON formatting available for
production log aggregation.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from quotagate.app.core.config import settings

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "timestamp", "logger", "level", "location", "taskName",
))


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs one JSON object per record with the standard fields, the
    rate-limit context fields when present and any remaining ``extra``
    values grouped under ``"extra"``.
    """

    CONTEXT_FIELDS = [
        "request_id",    # Request ID from X-Request-ID header
        "identity_key",  # Rate-limited subject, e.g. "chat_free_user-1"
        "purpose",       # Policy name (password_update, questions, chat, ...)
        "source",        # Counter store that answered (redis, fallback, db, memory)
        "path",          # Request path
        "method",        # HTTP method
        "status_code",   # HTTP response status
    ]

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {}

        record.message = record.getMessage()

        log_data["timestamp"] = datetime.now().astimezone().isoformat()
        log_data["level"] = record.levelname
        log_data["logger"] = record.name
        log_data["message"] = record.message

        log_data["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "-":
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds default rate-limit context to records."""

    CONTEXT_DEFAULTS = {
        "request_id": None,
        "identity_key": None,
        "purpose": None,
        "source": None,
        "path": None,
        "method": None,
        "status_code": None,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _stream_handler(level: str, formatter: str) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "stream": sys.stdout,
        "filters": ["context"],
    }


def get_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping for the configured format and level.

    ``log_format`` selects one of ``text``, ``structured`` (text plus the
    identity/purpose/source context) or ``json``.
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    formatters: Dict[str, Any] = {
        "standard": {"format": _TEXT_FORMAT},
        "structured": {
            "format": _TEXT_FORMAT + " - identity_key=%(identity_key)s - purpose=%(purpose)s - source=%(source)s"
        },
    }
    if log_format == "json":
        formatters["json"] = {"()": "quotagate.app.core.logging.JSONFormatter"}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {"context": {"()": "quotagate.app.core.logging.ContextFilter"}},
        "handlers": {"console": _stream_handler(log_level, formatter)},
        "loggers": {
            name: {"level": log_level, "handlers": ["console"], "propagate": False}
            for name in ("quotagate", "uvicorn")
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str = "quotagate") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    identity_key: Optional[str] = None,
    purpose: Optional[str] = None,
    source: Optional[str] = None,
    **extra
) -> Dict[str, Any]:
    """Create a log context dictionary for use with the extra parameter.

    Example:
        >>> logger.warning(
        ...     "Shared counter unavailable",
        ...     extra=get_log_context(identity_key="global_api_10.0.0.1", source="fallback")
        ... )
    """
    context = {
        "request_id": request_id,
        "identity_key": identity_key,
        "purpose": purpose,
        "source": source,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
