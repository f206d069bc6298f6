"""CRUD operations for the database layer."""

from quotagate.app.db.crud.user import (
    get_chat_usage,
    get_user_by_email,
    get_user_by_id,
    increment_chat_count,
    set_chat_window,
)

__all__ = [
    "get_chat_usage",
    "get_user_by_email",
    "get_user_by_id",
    "increment_chat_count",
    "set_chat_window",
]
