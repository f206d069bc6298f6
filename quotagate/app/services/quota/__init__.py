"""Rate limiting and usage quotas.

Fixed windows with lazy reset over pluggable counter stores, a Redis
sliding-window counter with local fallback for IP throttling, and
durable per-user chat credits.
"""

from .evaluator import evaluate, peek
from .models import CounterRecord, LimitInfo, LimitResult, RateLimitPolicy
from .policies import chat_policy, make_identity_key
from .redis_lua import SLIDING_WINDOW_SCRIPT
from .redis_store import RedisSlidingWindowCounter
from .service import (
    ChatQuotaService,
    ChatUsage,
    FallbackRateLimiter,
    PersistentQuotaLimiter,
    QuotaManager,
    get_chat_quota_service,
    get_ip_rate_limiter,
    reset_chat_quota_service,
    reset_ip_rate_limiter,
)
from .stores import CounterStore, DurableCounterStore, InMemoryCounterStore
from .window import is_window_expired, open_window

__all__ = [
    # Models
    "CounterRecord",
    "LimitInfo",
    "LimitResult",
    "RateLimitPolicy",
    # Window tracking and evaluation
    "is_window_expired",
    "open_window",
    "evaluate",
    "peek",
    # Stores
    "CounterStore",
    "InMemoryCounterStore",
    "DurableCounterStore",
    "RedisSlidingWindowCounter",
    "SLIDING_WINDOW_SCRIPT",
    # Services
    "QuotaManager",
    "FallbackRateLimiter",
    "PersistentQuotaLimiter",
    "ChatQuotaService",
    "ChatUsage",
    "get_ip_rate_limiter",
    "reset_ip_rate_limiter",
    "get_chat_quota_service",
    "reset_chat_quota_service",
    # Policies
    "chat_policy",
    "make_identity_key",
]
