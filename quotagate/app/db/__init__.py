"""Database layer: the User model with its chat counter columns, async
session management and CRUD helpers.
"""

from quotagate.app.db.base import Base
from quotagate.app.db.models import User
from quotagate.app.db.async_session import (
    close_async_engine,
    get_async_engine,
    get_async_session,
    get_async_session_maker,
    init_async_db,
)

__all__ = [
    "Base",
    "User",
    "close_async_engine",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
    "init_async_db",
]
