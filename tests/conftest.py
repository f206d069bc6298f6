"""Shared fixtures for quotagate tests."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from quotagate.app.db.base import Base
from quotagate.app.db.models import User
from quotagate.app.services.quota import reset_chat_quota_service, reset_ip_rate_limiter

START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset process-wide limiters before and after each test."""
    reset_ip_rate_limiter()
    reset_chat_quota_service()
    yield
    reset_ip_rate_limiter()
    reset_chat_quota_service()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """In-memory SQLite database with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def add_user(session_factory):
    """Insert a user row: ``await add_user("u1", subscription="PRO")``."""

    async def _add_user(user_id: str, subscription: str = "FREE", **fields) -> User:
        user = User(
            id=user_id,
            email=fields.pop("email", f"{user_id}@example.com"),
            name=fields.pop("name", user_id),
            subscription=subscription,
            **fields,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _add_user
