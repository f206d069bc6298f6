from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quotagate.app.api.chat_limit import router as chat_limit_router
from quotagate.app.core.config import settings
from quotagate.app.core.logging import get_logger, setup_logging
from quotagate.app.core.utils import now_ms
from quotagate.app.db.async_session import close_async_engine, init_async_db
from quotagate.app.exceptions import (
    AuthenticationError,
    QuotaGateException,
    RateLimitExceededError,
    StoreUnavailableError,
)
from quotagate.app.middleware.rate_limit import RateLimitMiddleware, rate_limit_headers
from quotagate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from quotagate.app.services.quota import get_ip_rate_limiter


def create_app(init_db: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        init_db: Create database tables on startup

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create tables on startup; release Redis and database on shutdown."""
        if init_db:
            await init_async_db()
        logger.info(
            "Application startup complete",
            extra={"redis_enabled": settings.redis_enabled, "debug_mode": settings.debug},
        )

        yield

        await get_ip_rate_limiter().close()
        await close_async_engine()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="quotagate",
        description="Rate limiting and chat usage quotas",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware order: last added = first executed
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(chat_limit_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check reporting database and Redis reachability."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        try:
            from sqlalchemy import text
            from quotagate.app.db.async_session import get_async_engine

            async with get_async_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            health_status["components"]["database"] = {"status": "ok"}
        except Exception as e:
            health_status["status"] = "degraded"
            health_status["components"]["database"] = {"status": "error", "error": str(e)[:100]}

        if settings.redis_enabled:
            try:
                await get_ip_rate_limiter().ping()
                health_status["components"]["redis"] = {"status": "ok"}
            except Exception as e:
                # Throttling keeps working on the local fallback
                health_status["status"] = "degraded"
                health_status["components"]["redis"] = {"status": "error", "error": str(e)[:100]}
        else:
            health_status["components"]["redis"] = {"status": "disabled"}

        return health_status

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        retry_after = exc.result.retry_after_seconds(now_ms())
        headers = rate_limit_headers(exc.result)
        headers["Retry-After"] = str(retry_after)
        return JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": exc.message,
                "remaining": exc.result.remaining,
                "reset": exc.result.reset,
                "retry_after": retry_after,
            },
            headers=headers,
        )

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        """Handle AuthenticationError and return HTTP 401 response."""
        return JSONResponse(
            status_code=401,
            content={"error": "authentication_failed", "message": exc.detail},
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        """Handle StoreUnavailableError and return HTTP 503 response."""
        logger.error(
            f"Quota store unavailable [request_id={get_request_id(request)}]",
            extra={"request_id": get_request_id(request), "store": exc.store},
        )
        return JSONResponse(
            status_code=503,
            content={"error": "quota_store_unavailable", "message": exc.message},
            headers={"Retry-After": "5"},
        )

    @app.exception_handler(QuotaGateException)
    async def quotagate_error_handler(request: Request, exc: QuotaGateException) -> JSONResponse:
        """Handle remaining quotagate errors with their own status code."""
        logger.error(
            f"{type(exc).__name__}: {exc.message}",
            extra={"request_id": get_request_id(request)},
        )
        content: dict[str, Any] = {"error": "quota_error", "message": "Internal error"}
        if settings.debug:
            content["message"] = exc.message
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=exc.status_code, content=content)

    return app


app = create_app()
