"""IP-based rate limiting middleware.

Applies to every path under ``/api``: a strict limit on password updates,
a per-minute limit on quiz question fetches, and a global baseline for all
API traffic. Counting goes through the shared limiter, which falls back to
process-local state when Redis is down.
"""

from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from quotagate.app.core.config import settings
from quotagate.app.core.logging import get_log_context, get_logger
from quotagate.app.core.utils import now_ms
from quotagate.app.services.quota import (
    FallbackRateLimiter,
    LimitResult,
    RateLimitPolicy,
    get_ip_rate_limiter,
    make_identity_key,
)
from quotagate.app.services.quota import policies

logger = get_logger(__name__)


def get_client_ip(request: Request) -> str:
    """Client IP: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def rate_limit_headers(result: LimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }


def too_many_requests(result: LimitResult, message: str) -> JSONResponse:
    """429 response carrying Retry-After derived from the window reset."""
    retry_after = result.retry_after_seconds(now_ms())
    headers = rate_limit_headers(result)
    headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": message,
            "retry_after": retry_after,
            "reset": result.reset,
        },
        headers=headers,
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce IP rate limits on API requests."""

    PASSWORD_UPDATE_PATH = "/api/user/update-password"
    QUESTIONS_PATH = "/api/quiz/questions"

    def __init__(
        self,
        app,
        limiter: Optional[FallbackRateLimiter] = None,
        enforce_global: Optional[bool] = None,
    ):
        """Initialize the middleware.

        Args:
            app: ASGI application
            limiter: IP rate limiter (defaults to the process-wide one)
            enforce_global: Block on the global baseline (None = from settings)
        """
        super().__init__(app)
        self.limiter = limiter or get_ip_rate_limiter()
        self.enforce_global = (
            enforce_global if enforce_global is not None else settings.rate_limit_enforce_global
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not path.startswith("/api"):
            return await call_next(request)

        ip = get_client_ip(request)

        if self.PASSWORD_UPDATE_PATH in path:
            result = await self._check(policies.PURPOSE_PASSWORD_UPDATE, ip, policies.password_update_policy())
            if not result.success:
                return too_many_requests(result, "Too many password attempts.")

        if self.QUESTIONS_PATH in path:
            result = await self._check(policies.PURPOSE_QUESTIONS, ip, policies.questions_policy())
            if not result.success:
                return too_many_requests(result, "Slowing down questions.")

        global_result = await self._check(policies.PURPOSE_GLOBAL_API, ip, policies.global_api_policy())
        if not global_result.success and self.enforce_global:
            return too_many_requests(global_result, "System is busy (Rate limit exceeded).")

        response = await call_next(request)
        response.headers.update(rate_limit_headers(global_result))
        return response

    async def _check(self, purpose: str, ip: str, policy: RateLimitPolicy) -> LimitResult:
        key = make_identity_key(purpose, ip)
        result = await self.limiter.check_and_consume(key, policy)
        if not result.success:
            logger.info(
                f"IP rate limit exceeded ({purpose})",
                extra=get_log_context(identity_key=key, purpose=purpose, source=result.source),
            )
        return result
