"""Chat credit endpoints.

The chat endpoint consumes one credit per message through ``consume``;
the UI polls ``GET /api/quiz/chat/limit`` to show remaining credits.
Caller identity arrives in ``X-User-ID``, set by the upstream auth layer.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header

from quotagate.app.core.logging import get_log_context, get_logger
from quotagate.app.exceptions import AuthenticationError, RateLimitExceededError
from quotagate.app.services.quota import ChatQuotaService, get_chat_quota_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/quiz/chat", tags=["chat-quota"])


def get_current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Resolve the authenticated user ID from the upstream auth header."""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError()
    return x_user_id.strip()


UserIdDep = Annotated[str, Depends(get_current_user_id)]
ChatQuotaDep = Annotated[ChatQuotaService, Depends(get_chat_quota_service)]


@router.get("/limit")
async def get_chat_limit(user_id: UserIdDep, service: ChatQuotaDep) -> dict[str, Any]:
    """Remaining chat credits for the caller's subscription tier."""
    usage = await service.usage(user_id)
    return usage.to_dict()


@router.post("/limit/consume")
async def consume_chat_credit(user_id: UserIdDep, service: ChatQuotaDep) -> dict[str, Any]:
    """Consume one chat credit, or fail with 429 when the tier is exhausted."""
    tier, result = await service.consume(user_id)
    if not result.success:
        logger.info(
            f"Chat quota exhausted for {user_id} ({tier})",
            extra=get_log_context(identity_key=user_id, purpose="chat", source=result.source),
        )
        raise RateLimitExceededError(
            result,
            detail=f"{tier} chat limit reached. Credits reset at {result.reset}.",
        )
    data = result.to_dict()
    data["type"] = tier
    return data
