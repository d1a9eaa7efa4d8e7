"""Rate limiting middleware using a Redis fixed window.

Default: 100 requests per 15 minutes per client. Fails open when Redis is
unavailable.
"""
from typing import Callable

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from jewelry_store.cache import RedisCache, cache, cache_key
from jewelry_store.schemas.error import REMEDIATION_HINTS, ErrorCode

logger = structlog.get_logger(__name__)

EXEMPT_PATHS = ("/health", "/health/ready", "/metrics")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Limits requests per window per bearer token or client IP."""

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_seconds: int = 900,
        store: RedisCache = cache,
    ):
        """
        Initialize rate limiter.

        Args:
            app: ASGI application
            max_requests: Maximum requests allowed in window
            window_seconds: Time window in seconds
            store: Counter backend
        """
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Reject with 429 once the caller exceeds the window budget."""
        if request.url.path.startswith(EXEMPT_PATHS):
            return await call_next(request)

        identifier = self._get_identifier(request)
        key = cache_key("rate_limit", identifier)
        count = await self.store.increment_window(key, self.window_seconds)

        # Redis unavailable: allow the request
        if count is None:
            return await call_next(request)

        remaining = max(0, self.max_requests - count)
        if count > self.max_requests:
            retry_after = await self.store.ttl(key) or self.window_seconds
            logger.warning(
                "rate_limit_exceeded",
                identifier=identifier,
                path=request.url.path,
                method=request.method,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "success": False,
                    "error": "Too many requests, please try again later",
                    "code": ErrorCode.RATE_LIMIT_EXCEEDED,
                    "remediation": REMEDIATION_HINTS[ErrorCode.RATE_LIMIT_EXCEEDED],
                },
                headers={
                    "X-RateLimit-Limit": str(self.max_requests),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    @staticmethod
    def _get_identifier(request: Request) -> str:
        """Bearer token prefix when present, otherwise the (forwarded) client IP."""
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer ") and auth_header[7:]:
            return f"token:{auth_header[7:27]}"

        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return f"ip:{forwarded_for.split(',')[0].strip()}"
        return f"ip:{request.client.host if request.client else 'unknown'}"
