"""Data models for quota management."""

import math
from dataclasses import dataclass, field
from typing import Optional

from quotagate.app.core.utils import seconds_until
from quotagate.app.exceptions import InvalidPolicyError


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable {limit, window} pair supplied by each call site.

    Attributes:
        limit: Maximum operations per window. 0 denies every request.
        window_ms: Window duration in milliseconds.
    """
    limit: int
    window_ms: int

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 0:
            raise InvalidPolicyError(self.limit, self.window_ms)
        if isinstance(self.window_ms, bool) or not isinstance(self.window_ms, int) or self.window_ms < 1:
            raise InvalidPolicyError(self.limit, self.window_ms)

    @property
    def window_seconds(self) -> int:
        """Window rounded up to whole seconds, for the Redis store."""
        return max(1, math.ceil(self.window_ms / 1000))


@dataclass
class CounterRecord:
    """Per-identity counter state.

    Attributes:
        count: Operations observed in the current window
        reset_at: Window expiry in epoch milliseconds (None if never opened)
    """
    count: int = 0
    reset_at: Optional[int] = None

    def is_expired(self, now: int) -> bool:
        """A record past its reset time is treated as a fresh window."""
        return self.reset_at is None or now > self.reset_at


@dataclass
class LimitResult:
    """Outcome of a single check-and-consume call."""
    success: bool
    remaining: int
    reset: int
    limit: int = 0
    source: str = field(default="memory")

    def __post_init__(self) -> None:
        self.remaining = max(0, self.remaining)

    def retry_after_seconds(self, now: int) -> int:
        return seconds_until(self.reset, now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "remaining": self.remaining,
            "reset": self.reset,
            "limit": self.limit,
        }


@dataclass
class LimitInfo:
    """Read-only usage snapshot; reading it never consumes quota."""
    count: int
    remaining: int
    reset: int
    limit: int

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "remaining": self.remaining,
            "resetTime": self.reset,
            "limit": self.limit,
        }
