"""Core utilities for quotagate."""

from quotagate.app.core.config import settings
from quotagate.app.core.logging import get_logger, setup_logging
from quotagate.app.core.utils import now_ms

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "now_ms",
]
