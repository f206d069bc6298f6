"""Quota management for IP throttling and per-user chat credits.

Two call sites share one contract, ``check_and_consume(key, policy)``:

- IP throttling tries the shared Redis counter first and degrades to a
  process-local counter when Redis fails. In degraded mode each instance
  enforces its own limit, so N instances admit up to N times the policy
  limit. Each call retries Redis; there is no backoff.
- Chat credits are counted in the durable store. There is no fallback:
  a store outage propagates as ``StoreUnavailableError``.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from quotagate.app.core.config import settings
from quotagate.app.core.logging import get_log_context, get_logger
from quotagate.app.core.utils import now_ms
from quotagate.app.db.async_session import session_scope
from quotagate.app.db.crud import get_user_by_id
from quotagate.app.exceptions import StoreUnavailableError, UnknownIdentityError

from .evaluator import evaluate, peek
from .models import LimitInfo, LimitResult, RateLimitPolicy
from .policies import chat_policy
from .redis_store import RedisSlidingWindowCounter
from .stores import CounterStore, DurableCounterStore, InMemoryCounterStore

logger = get_logger(__name__)


class QuotaManager:
    """Runs the window/evaluate cycle against a single counter store."""

    def __init__(self, store: CounterStore, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self._clock = clock

    async def check_and_consume(self, key: str, policy: RateLimitPolicy) -> LimitResult:
        """Consume one unit for ``key`` if ``policy`` allows it."""
        result = await evaluate(self.store, key, policy, self._clock())
        if not result.success:
            logger.info(
                f"Rate limit denied for {key}",
                extra=get_log_context(identity_key=key, source=result.source),
            )
        return result

    async def get_limit_info(self, key: str, policy: RateLimitPolicy) -> LimitInfo:
        """Usage snapshot for ``key``; consumes nothing."""
        return await peek(self.store, key, policy, self._clock())


class FallbackRateLimiter:
    """IP-keyed limiter: shared Redis counter with a local fallback.

    Callers always get a well-formed ``LimitResult``; Redis failures are
    logged and the same request is re-evaluated against local state.
    """

    def __init__(
        self,
        fast_counter: Optional[RedisSlidingWindowCounter] = None,
        local_store: Optional[InMemoryCounterStore] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            fast_counter: Shared counter; None runs purely on local state
            local_store: Process-local store used when Redis is absent or down
            clock: Epoch-millisecond clock
        """
        self._fast = fast_counter
        self._local = QuotaManager(
            local_store if local_store is not None else InMemoryCounterStore(), clock=clock
        )

    @property
    def local_store(self) -> CounterStore:
        return self._local.store

    async def check_and_consume(self, key: str, policy: RateLimitPolicy) -> LimitResult:
        if self._fast is not None:
            try:
                return await self._fast.evaluate(key, policy.limit, policy.window_seconds)
            except Exception as e:
                logger.warning(
                    f"Shared rate limit store failed for {key}: {e}. Falling back to local counter.",
                    extra=get_log_context(identity_key=key, source="fallback"),
                )
            result = await self._local.check_and_consume(key, policy)
            result.source = "fallback"
            return result

        return await self._local.check_and_consume(key, policy)

    async def ping(self) -> bool:
        """Check the shared counter; raises if Redis is unreachable.

        Returns:
            False when no shared counter is configured
        """
        if self._fast is None:
            return False
        return await self._fast.ping()

    async def close(self) -> None:
        if self._fast is not None:
            await self._fast.close()


class PersistentQuotaLimiter:
    """User-keyed limiter over the durable store.

    A missing user is denied rather than admitted unmetered.
    """

    def __init__(
        self,
        store: Optional[DurableCounterStore] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._manager = QuotaManager(
            store if store is not None else DurableCounterStore(), clock=clock
        )
        self._clock = clock

    async def check_and_consume(self, user_id: str, policy: RateLimitPolicy) -> LimitResult:
        try:
            return await self._manager.check_and_consume(user_id, policy)
        except UnknownIdentityError:
            logger.info(
                f"Chat quota denied for unknown user {user_id}",
                extra=get_log_context(identity_key=user_id, source="db"),
            )
            return LimitResult(
                success=False,
                remaining=0,
                reset=self._clock() + policy.window_ms,
                limit=policy.limit,
                source="db",
            )

    async def get_limit_info(self, user_id: str, policy: RateLimitPolicy) -> LimitInfo:
        return await self._manager.get_limit_info(user_id, policy)


@dataclass
class ChatUsage:
    """Chat quota snapshot with the tier that produced it."""
    tier: str
    info: LimitInfo

    def to_dict(self) -> dict:
        data = self.info.to_dict()
        data["type"] = self.tier
        return data


class ChatQuotaService:
    """Tier-aware chat credits.

    Looks up the user's subscription, picks the FREE or PRO policy and
    delegates to the persistent limiter.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Any]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._limiter = PersistentQuotaLimiter(DurableCounterStore(session_factory), clock=clock)

    async def _get_subscription(self, user_id: str) -> Optional[str]:
        try:
            async with session_scope(self._session_factory) as session:
                user = await get_user_by_id(session, user_id)
        except SQLAlchemyError as e:
            logger.error(
                f"Subscription lookup failed for {user_id}: {e}",
                extra=get_log_context(identity_key=user_id, source="db"),
            )
            raise StoreUnavailableError(store="database") from e
        return user.subscription if user is not None else None

    async def consume(self, user_id: str) -> tuple[str, LimitResult]:
        """Consume one chat credit.

        Returns:
            Tuple of (tier, result)

        Raises:
            StoreUnavailableError: If the database cannot be reached
        """
        tier, policy = chat_policy(await self._get_subscription(user_id))
        return tier, await self._limiter.check_and_consume(user_id, policy)

    async def usage(self, user_id: str) -> ChatUsage:
        """Remaining chat credits without consuming one."""
        tier, policy = chat_policy(await self._get_subscription(user_id))
        return ChatUsage(tier=tier, info=await self._limiter.get_limit_info(user_id, policy))


_ip_rate_limiter: Optional[FallbackRateLimiter] = None
_chat_quota_service: Optional[ChatQuotaService] = None


def get_ip_rate_limiter() -> FallbackRateLimiter:
    """Get the process-wide IP rate limiter."""
    global _ip_rate_limiter
    if _ip_rate_limiter is None:
        fast_counter = RedisSlidingWindowCounter() if settings.redis_enabled else None
        _ip_rate_limiter = FallbackRateLimiter(fast_counter=fast_counter)
        logger.info(
            "Using Redis rate limiter with local fallback"
            if fast_counter is not None
            else "Using in-memory rate limiter"
        )
    return _ip_rate_limiter


def reset_ip_rate_limiter() -> None:
    """Reset the process-wide IP rate limiter."""
    global _ip_rate_limiter
    _ip_rate_limiter = None


def get_chat_quota_service() -> ChatQuotaService:
    """Get the process-wide chat quota service."""
    global _chat_quota_service
    if _chat_quota_service is None:
        _chat_quota_service = ChatQuotaService()
    return _chat_quota_service


def reset_chat_quota_service() -> None:
    """Reset the process-wide chat quota service."""
    global _chat_quota_service
    _chat_quota_service = None
