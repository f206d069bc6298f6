"""Allow/deny decision over a counter store.

The sequence per request is: expire-and-reset if needed, compare against
the limit, then increment only when admitted. Denied requests never
consume quota.
"""

from .models import LimitInfo, LimitResult, RateLimitPolicy
from .stores import CounterStore
from .window import is_window_expired, open_window


async def evaluate(
    store: CounterStore,
    key: str,
    policy: RateLimitPolicy,
    now: int,
) -> LimitResult:
    """Check ``key`` against ``policy`` and consume one unit if allowed.

    Args:
        store: Counter store holding the record for ``key``
        key: Identity key
        policy: The {limit, window} pair for this call site
        now: Current time in epoch milliseconds

    Returns:
        LimitResult with ``remaining`` computed after the increment
    """
    record = await store.get(key)

    if is_window_expired(record, now):
        record = open_window(now, policy)
        await store.set_reset(key, record)

    if record.count >= policy.limit:
        return LimitResult(
            success=False,
            remaining=0,
            reset=record.reset_at,
            limit=policy.limit,
            source=store.name,
        )

    new_count = await store.increment(key)
    return LimitResult(
        success=True,
        remaining=max(0, policy.limit - new_count),
        reset=record.reset_at,
        limit=policy.limit,
        source=store.name,
    )


async def peek(
    store: CounterStore,
    key: str,
    policy: RateLimitPolicy,
    now: int,
) -> LimitInfo:
    """Report usage for ``key`` without writing anything."""
    record = await store.get(key)

    if is_window_expired(record, now):
        return LimitInfo(count=0, remaining=policy.limit, reset=now + policy.window_ms, limit=policy.limit)

    return LimitInfo(
        count=record.count,
        remaining=max(0, policy.limit - record.count),
        reset=record.reset_at,
        limit=policy.limit,
    )
