"""Fixed-window expiry decisions.

Windows are reset lazily at access time; there is no background sweep.
"""

from typing import Optional

from .models import CounterRecord, RateLimitPolicy


def is_window_expired(record: Optional[CounterRecord], now: int) -> bool:
    """Return True if ``record`` is absent or its window has elapsed.

    Examples:
        >>> is_window_expired(None, 1_000)
        True
        >>> is_window_expired(CounterRecord(count=5, reset_at=2_000), 2_000)
        False
        >>> is_window_expired(CounterRecord(count=5, reset_at=2_000), 2_001)
        True
    """
    if record is None:
        return True
    return record.is_expired(now)


def open_window(now: int, policy: RateLimitPolicy) -> CounterRecord:
    """Fresh record for a window starting at ``now``."""
    return CounterRecord(count=0, reset_at=now + policy.window_ms)
