"""Named rate limit policies, read from settings.

The numbers are product decisions; they live in configuration and are
looked up per call so tests and deployments can override them.
"""

from quotagate.app.core.config import settings
from quotagate.app.db.models import SUBSCRIPTION_PRO

from .models import RateLimitPolicy

# Identity key purposes
PURPOSE_PASSWORD_UPDATE = "password_upd"
PURPOSE_QUESTIONS = "q_limit"
PURPOSE_GLOBAL_API = "global_api"
PURPOSE_CHAT_FREE = "chat_free"
PURPOSE_CHAT_PRO = "chat_pro"


def make_identity_key(purpose: str, subject: str) -> str:
    """Scope a subject (IP address or user ID) by purpose.

    Examples:
        >>> make_identity_key("global_api", "203.0.113.9")
        'global_api_203.0.113.9'
    """
    return f"{purpose}_{subject}"


def password_update_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        limit=settings.rate_limit_password_limit,
        window_ms=settings.rate_limit_password_window_ms,
    )


def questions_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        limit=settings.rate_limit_questions_limit,
        window_ms=settings.rate_limit_questions_window_ms,
    )


def global_api_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        limit=settings.rate_limit_global_limit,
        window_ms=settings.rate_limit_global_window_ms,
    )


def chat_policy(subscription: str | None) -> tuple[str, RateLimitPolicy]:
    """Pick the chat tier for a subscription.

    Anything other than PRO, including a missing user, gets the free tier.

    Returns:
        Tuple of (tier name, policy)
    """
    if subscription == SUBSCRIPTION_PRO:
        return "PRO", RateLimitPolicy(
            limit=settings.chat_pro_limit,
            window_ms=settings.chat_pro_window_ms,
        )
    return "FREE", RateLimitPolicy(
        limit=settings.chat_free_limit,
        window_ms=settings.chat_free_window_ms,
    )
