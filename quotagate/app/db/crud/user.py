"""User CRUD operations, including the chat quota counter fields."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quotagate.app.db.models import User


async def get_user_by_id(session: AsyncSession, user_id: str) -> User | None:
    """Get a user by ID."""
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Get a user by email address."""
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_chat_usage(
    session: AsyncSession,
    user_id: str,
) -> tuple[int, datetime | None] | None:
    """Read the chat counter fields for a user.

    Returns:
        Tuple of (chat_count, chat_reset_at), or None if the user does not exist
    """
    result = await session.execute(
        select(User.chat_count, User.chat_reset_at).where(User.id == user_id)
    )
    row = result.fetchone()
    if row is None:
        return None
    return row[0], row[1]


async def set_chat_window(
    session: AsyncSession,
    user_id: str,
    chat_count: int,
    chat_reset_at: datetime,
    auto_commit: bool = True,
) -> bool:
    """Overwrite a user's chat window in place.

    Returns:
        True if a user row was updated, False if the user does not exist
    """
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(chat_count=chat_count, chat_reset_at=chat_reset_at)
    )
    if auto_commit:
        await session.commit()
    return result.rowcount > 0


async def increment_chat_count(
    session: AsyncSession,
    user_id: str,
    auto_commit: bool = True,
) -> int | None:
    """Atomically add one to a user's chat counter.

    Uses a single UPDATE with RETURNING so concurrent increments never
    overwrite each other.

    Returns:
        The new chat_count, or None if the user does not exist
    """
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(chat_count=User.chat_count + 1)
        .returning(User.chat_count)
    )
    row = result.fetchone()
    if auto_commit:
        await session.commit()
    if row is None:
        return None
    return row[0]
