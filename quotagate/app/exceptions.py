"""Custom exceptions for quotagate."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quotagate.app.services.quota.models import LimitResult


class QuotaGateException(Exception):
    """Base class for quotagate exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Quota service error"):
        self.message = message
        super().__init__(message)


class InvalidPolicyError(QuotaGateException):
    """Raised when a rate limit policy is misconfigured.

    A negative limit or a non-positive window is a caller error; it is
    rejected before any counter is touched.
    """
    status_code = 500

    def __init__(self, limit: int, window_ms: int, detail: str | None = None):
        self.limit = limit
        self.window_ms = window_ms
        super().__init__(
            detail or f"Invalid rate limit policy: limit={limit}, window_ms={window_ms}"
        )


class StoreUnavailableError(QuotaGateException):
    """Raised when the durable counter store cannot be reached.

    Maps to HTTP 503 Service Unavailable. Durable quotas have no fallback.
    """
    status_code = 503

    def __init__(self, store: str = "database", detail: str | None = None):
        self.store = store
        super().__init__(detail or f"Counter store '{store}' is unavailable")


class UnknownIdentityError(QuotaGateException):
    """Raised when a durable counter write targets a missing identity.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"No counter record for identity '{identity}'")


class RateLimitExceededError(QuotaGateException):
    """Raised at the HTTP boundary when a quota check is denied.

    Maps to HTTP 429 Too Many Requests. Carries the denied ``LimitResult``
    so handlers can emit Retry-After and X-RateLimit-* headers.
    """
    status_code = 429

    def __init__(self, result: LimitResult, detail: str | None = None):
        self.result = result
        super().__init__(detail or "Rate limit exceeded. Please try again later.")


class AuthenticationError(QuotaGateException):
    """Raised when the caller identity is missing.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, detail: str = "Missing user identity"):
        self.detail = detail
        super().__init__(detail)
