"""Async engine and session management.

PostgreSQL via asyncpg in production; SQLite via aiosqlite for local runs
and tests.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from quotagate.app.core.config import settings
from quotagate.app.core.logging import get_logger

logger = get_logger(__name__)

_session_maker: async_sessionmaker[AsyncSession] | None = None


@lru_cache(maxsize=1)
def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Get or create the shared async engine.

    Args:
        database_url: Optional database URL. Uses settings if not provided.
    """
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        if ":memory:" in url:
            # Every session must see the same in-memory database
            engine = create_async_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_async_engine(url)
        logger.info("Created SQLite async engine")
        return engine

    logger.info(
        f"Creating PostgreSQL async engine (pool_size={settings.db_pool_size}, "
        f"max_overflow={settings.db_max_overflow})"
    )
    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
    )


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            bind=get_async_engine(),
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session on the shared engine.

    Usage:
        async with get_async_session() as session:
            user = await get_user_by_id(session, user_id)
    """
    async with get_async_session_maker()() as session:
        yield session


def session_scope(factory: Callable[[], Any] | None = None) -> Any:
    """Open a session from ``factory``, or from the shared engine if None.

    ``factory`` is any zero-argument callable returning an async context
    manager that yields an ``AsyncSession``, such as an ``async_sessionmaker``.
    """
    if factory is not None:
        return factory()
    return get_async_session()


async def close_async_engine() -> None:
    """Dispose of the shared engine on shutdown."""
    global _session_maker

    if get_async_engine.cache_info().currsize:
        try:
            await get_async_engine().dispose()
        except RuntimeError:
            # Connections bound to an already closed event loop
            logger.debug("Engine dispose skipped after event loop shutdown")

    get_async_engine.cache_clear()
    _session_maker = None


async def init_async_db() -> None:
    """Create all tables. Called during application startup."""
    from quotagate.app.db.base import Base
    from quotagate.app.db import models  # noqa: F401 - registers the User table

    async with get_async_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
