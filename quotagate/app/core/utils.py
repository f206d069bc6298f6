"""Utility functions for quotagate."""

import math
import time
from datetime import datetime, timedelta, timezone
from typing import Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def datetime_to_ms(value: Optional[datetime]) -> Optional[int]:
    """Convert a datetime to epoch milliseconds.

    Naive datetimes are taken to be UTC, which is how SQLite hands back
    timezone-aware columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def seconds_until(reset_ms: int, now: int) -> int:
    """Whole seconds from ``now`` until ``reset_ms``, never below 1.

    Examples:
        >>> seconds_until(10_500, 10_000)
        1
        >>> seconds_until(70_000, 10_000)
        60
    """
    return max(1, math.ceil((reset_ms - now) / 1000))
