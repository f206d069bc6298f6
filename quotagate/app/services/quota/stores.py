"""Counter store backends for quota evaluation.

Both stores expose the same read/reset/increment contract and are
policy-agnostic; the evaluator decides, the store only persists.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from quotagate.app.core.logging import get_log_context, get_logger
from quotagate.app.core.utils import datetime_to_ms, ms_to_datetime
from quotagate.app.db.async_session import session_scope
from quotagate.app.db.crud import get_chat_usage, increment_chat_count, set_chat_window
from quotagate.app.exceptions import StoreUnavailableError, UnknownIdentityError

from .models import CounterRecord

logger = get_logger(__name__)


class CounterStore(ABC):
    """Abstract base class for counter stores."""

    name: str = "store"

    @abstractmethod
    async def get(self, key: str) -> Optional[CounterRecord]:
        """Return the record for ``key``, or None if it was never written."""
        pass

    @abstractmethod
    async def set_reset(self, key: str, record: CounterRecord) -> None:
        """Overwrite the record for ``key`` with a freshly opened window."""
        pass

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Add one to the count for ``key`` and return the new count."""
        pass


class InMemoryCounterStore(CounterStore):
    """Process-local counter map.

    Entries are never evicted; they self-expire through ``reset_at`` and are
    overwritten in place. Mutation is last-writer-wins without locking, so
    two concurrent requests for one key may both be admitted.
    """

    name = "memory"

    def __init__(self) -> None:
        self._records: Dict[str, CounterRecord] = {}

    async def get(self, key: str) -> Optional[CounterRecord]:
        record = self._records.get(key)
        if record is None:
            return None
        return CounterRecord(count=record.count, reset_at=record.reset_at)

    async def set_reset(self, key: str, record: CounterRecord) -> None:
        self._records[key] = CounterRecord(count=record.count, reset_at=record.reset_at)

    async def increment(self, key: str) -> int:
        record = self._records.setdefault(key, CounterRecord())
        record.count += 1
        return record.count

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()


class DurableCounterStore(CounterStore):
    """Counter store backed by the ``users`` table.

    Keys are user IDs; ``count`` and ``reset_at`` live in the user's
    ``chat_count`` and ``chat_reset_at`` columns. Database failures surface
    as ``StoreUnavailableError`` since there is no safe substitute for a
    persistent, tier-aware quota.
    """

    name = "db"

    def __init__(self, session_factory: Optional[Callable[[], Any]] = None) -> None:
        """Initialize the store.

        Args:
            session_factory: Zero-argument callable returning an async context
                manager that yields an ``AsyncSession``. Defaults to the
                application's shared session factory.
        """
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[CounterRecord]:
        try:
            async with session_scope(self._session_factory) as session:
                usage = await get_chat_usage(session, key)
        except SQLAlchemyError as e:
            raise self._unavailable(key, "read", e) from e
        if usage is None:
            return None
        chat_count, chat_reset_at = usage
        return CounterRecord(count=chat_count or 0, reset_at=datetime_to_ms(chat_reset_at))

    async def set_reset(self, key: str, record: CounterRecord) -> None:
        if record.reset_at is None:
            raise ValueError("A reset record must carry reset_at")
        try:
            async with session_scope(self._session_factory) as session:
                updated = await set_chat_window(
                    session, key, record.count, ms_to_datetime(record.reset_at)
                )
        except SQLAlchemyError as e:
            raise self._unavailable(key, "reset", e) from e
        if not updated:
            raise UnknownIdentityError(key)

    async def increment(self, key: str) -> int:
        try:
            async with session_scope(self._session_factory) as session:
                new_count = await increment_chat_count(session, key)
        except SQLAlchemyError as e:
            raise self._unavailable(key, "increment", e) from e
        if new_count is None:
            raise UnknownIdentityError(key)
        return new_count

    def _unavailable(self, key: str, operation: str, error: Exception) -> StoreUnavailableError:
        logger.error(
            f"Durable counter {operation} failed for {key}: {error}",
            extra=get_log_context(identity_key=key, source=self.name),
        )
        return StoreUnavailableError(store="database")
