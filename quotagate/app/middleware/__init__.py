"""HTTP middleware for quotagate."""

from quotagate.app.middleware.rate_limit import RateLimitMiddleware, get_client_ip

__all__ = ["RateLimitMiddleware", "get_client_ip"]
