"""Fast shared counter backed by Redis.

The service computes success/remaining/reset itself with a sliding-window
Lua script, so callers never manage count/reset_at for anonymous traffic.
Errors are not handled here; the fallback limiter catches them.
"""

from typing import Any, Callable, Optional

from quotagate.app.core.config import settings
from quotagate.app.core.logging import get_logger
from quotagate.app.core.utils import now_ms

from .models import LimitResult
from .redis_lua import SLIDING_WINDOW_SCRIPT

logger = get_logger(__name__)


class RedisSlidingWindowCounter:
    """Distributed sliding-window counter shared by every instance.

    Redis key format:
    - {prefix}:{identity_key}:{bucket} - request count for one window bucket,
      where bucket = now_ms // window_ms
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the counter.

        Args:
            redis_client: Optional ``redis.asyncio`` client instance
            redis_url: Redis connection URL used when no client is given
            key_prefix: Namespace for counter keys
            clock: Epoch-millisecond clock
        """
        self._redis = redis_client
        self._redis_url = redis_url or settings.redis_url
        self._key_prefix = key_prefix or settings.redis_key_prefix
        self._clock = clock

    def _get_redis(self) -> Any:
        """Get or create the Redis client."""
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    def _make_key(self, key: str, bucket: int) -> str:
        return f"{self._key_prefix}:{key}:{bucket}"

    async def evaluate(self, key: str, limit: int, window_seconds: int) -> LimitResult:
        """Check and consume one unit for ``key`` in a single round trip.

        Args:
            key: Identity key, e.g. ``"global_api_203.0.113.9"``
            limit: Maximum requests per window
            window_seconds: Window length in seconds

        Returns:
            LimitResult computed by Redis

        Raises:
            redis.RedisError: (or any transport error) when Redis is unreachable
        """
        now = self._clock()
        window_ms = window_seconds * 1000
        bucket = now // window_ms
        reset = (bucket + 1) * window_ms

        remaining = await self._get_redis().eval(
            SLIDING_WINDOW_SCRIPT,
            2,  # Number of keys
            self._make_key(key, bucket),  # KEYS[1]
            self._make_key(key, bucket - 1),  # KEYS[2]
            limit,  # ARGV[1]
            now,  # ARGV[2]
            window_ms,  # ARGV[3]
            1,  # ARGV[4]
        )
        remaining = int(remaining)

        if remaining < 0:
            return LimitResult(success=False, remaining=0, reset=reset, limit=limit, source="redis")
        return LimitResult(success=True, remaining=remaining, reset=reset, limit=limit, source="redis")

    async def ping(self) -> bool:
        return bool(await self._get_redis().ping())

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            try:
                await self._redis.close()
            except Exception as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._redis = None
