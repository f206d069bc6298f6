"""Tests for the chat quota endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import pytest_asyncio

from quotagate.app.core.config import settings
from quotagate.app.db.async_session import close_async_engine, get_async_engine
from quotagate.app.exceptions import StoreUnavailableError
from quotagate.app.main import create_app
from quotagate.app.services.quota import service as quota_service
from quotagate.app.services.quota import (
    ChatQuotaService,
    FallbackRateLimiter,
    RedisSlidingWindowCounter,
    get_chat_quota_service,
)


@pytest.fixture(autouse=True)
def small_tiers(monkeypatch):
    monkeypatch.setattr(settings, "chat_free_limit", 2)
    monkeypatch.setattr(settings, "chat_pro_limit", 4)


@pytest.fixture
def chat_service(session_factory, clock):
    return ChatQuotaService(session_factory, clock=clock)


@pytest_asyncio.fixture
async def client(chat_service):
    app = create_app(init_db=False)
    app.dependency_overrides[get_chat_quota_service] = lambda: chat_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestChatLimitEndpoints:
    """Test the chat credit routes end to end."""

    @pytest.mark.asyncio
    async def test_missing_user_header(self, client):
        response = await client.get("/api/quiz/chat/limit")
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_failed"

    @pytest.mark.asyncio
    async def test_limit_for_new_user(self, client, add_user, clock):
        await add_user("u1")
        response = await client.get("/api/quiz/chat/limit", headers={"X-User-ID": "u1"})

        assert response.status_code == 200
        assert response.json() == {
            "count": 0,
            "remaining": 2,
            "resetTime": clock.now + settings.chat_free_window_ms,
            "limit": 2,
            "type": "FREE",
        }

    @pytest.mark.asyncio
    async def test_consume_until_exhausted(self, client, add_user, clock):
        await add_user("u1")
        headers = {"X-User-ID": "u1"}

        first = await client.post("/api/quiz/chat/limit/consume", headers=headers)
        second = await client.post("/api/quiz/chat/limit/consume", headers=headers)
        third = await client.post("/api/quiz/chat/limit/consume", headers=headers)

        assert first.status_code == 200
        assert first.json() == {
            "success": True,
            "remaining": 1,
            "reset": clock.now + settings.chat_free_window_ms,
            "limit": 2,
            "type": "FREE",
        }
        assert second.json()["remaining"] == 0
        assert third.status_code == 429
        assert third.json()["error"] == "rate_limit_exceeded"
        assert "FREE chat limit reached" in third.json()["message"]
        assert int(third.headers["Retry-After"]) >= 1

        usage = await client.get("/api/quiz/chat/limit", headers=headers)
        assert usage.json()["count"] == 2
        assert usage.json()["remaining"] == 0

    @pytest.mark.asyncio
    async def test_pro_user_gets_pro_tier(self, client, add_user):
        await add_user("pro", subscription="PRO")
        response = await client.post("/api/quiz/chat/limit/consume", headers={"X-User-ID": "pro"})

        assert response.status_code == 200
        assert response.json()["type"] == "PRO"
        assert response.json()["remaining"] == 3

    @pytest.mark.asyncio
    async def test_unknown_user_is_denied(self, client):
        response = await client.post("/api/quiz/chat/limit/consume", headers={"X-User-ID": "ghost"})
        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_store_outage_returns_503(self, client, chat_service, monkeypatch):
        async def unavailable(user_id):
            raise StoreUnavailableError(store="database")

        monkeypatch.setattr(chat_service, "consume", unavailable)
        response = await client.post("/api/quiz/chat/limit/consume", headers={"X-User-ID": "u1"})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json()["error"] == "quota_store_unavailable"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client, add_user):
        await add_user("u1")
        response = await client.get(
            "/api/quiz/chat/limit",
            headers={"X-User-ID": "u1", "X-Request-ID": "req-123"},
        )
        assert response.headers["X-Request-ID"] == "req-123"


class TestHealth:
    """Health reporting reuses the process-wide Redis client."""

    @pytest_asyncio.fixture
    async def sqlite_engine(self, monkeypatch):
        monkeypatch.setattr(settings, "database_url_override", "sqlite+aiosqlite:///:memory:")
        get_async_engine.cache_clear()
        yield
        await close_async_engine()

    @pytest.mark.asyncio
    async def test_redis_ping_through_shared_limiter(self, sqlite_engine, monkeypatch):
        redis_client = MagicMock()
        redis_client.ping = AsyncMock(return_value=True)
        limiter = FallbackRateLimiter(fast_counter=RedisSlidingWindowCounter(redis_client=redis_client))
        monkeypatch.setattr(settings, "redis_enabled", True)
        monkeypatch.setattr(quota_service, "_ip_rate_limiter", limiter)

        app = create_app(init_db=False)
        transport = httpx.ASGITransport(app=app)
        with patch("quotagate.app.services.quota.service.RedisSlidingWindowCounter") as new_counter:
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                first = await client.get("/health")
                second = await client.get("/health")

        assert first.json() == {
            "status": "ok",
            "components": {"database": {"status": "ok"}, "redis": {"status": "ok"}},
        }
        assert second.status_code == 200
        assert redis_client.ping.await_count == 2
        new_counter.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_down_reports_degraded(self, sqlite_engine, monkeypatch):
        redis_client = MagicMock()
        redis_client.ping = AsyncMock(side_effect=ConnectionError("connection refused"))
        limiter = FallbackRateLimiter(fast_counter=RedisSlidingWindowCounter(redis_client=redis_client))
        monkeypatch.setattr(settings, "redis_enabled", True)
        monkeypatch.setattr(quota_service, "_ip_rate_limiter", limiter)

        transport = httpx.ASGITransport(app=create_app(init_db=False))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            body = (await client.get("/health")).json()

        assert body["status"] == "degraded"
        assert body["components"]["redis"]["status"] == "error"
