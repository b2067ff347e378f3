"""
Rate limiting middleware for API protection.

Fixed-window counters kept in memory, keyed by client IP and path scope.
The authentication endpoints get a much tighter budget than the rest of
the API to slow down credential guessing.
"""

import time
import asyncio
from typing import Dict, Optional, Tuple, Callable
from dataclasses import dataclass, field

from fastapi import FastAPI, Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from .error_handler import RateLimitError, create_error_response


@dataclass
class PathLimit:
    """Request budget for one path prefix."""

    requests: int
    window_seconds: float


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    # Budget for any path without a specific limit
    requests_per_minute: int = 120

    enabled: bool = True

    excluded_paths: list = field(default_factory=lambda: [
        "/health",
        "/docs",
        "/openapi.json",
        "/redoc",
    ])

    # Path prefix -> budget (first match wins)
    path_limits: Dict[str, PathLimit] = field(default_factory=lambda: {
        "/auth": PathLimit(requests=20, window_seconds=15 * 60),
    })

    # Only for deployments behind a proxy that overwrites these headers
    trust_proxy_headers: bool = False
    trusted_proxy_headers: list = field(default_factory=lambda: [
        "X-Forwarded-For",
        "X-Real-IP",
    ])


@dataclass
class RateLimitState:
    """Counter for one window."""
    window_start: float
    request_count: int = 0


class InMemoryRateLimiter:
    """
    In-memory fixed-window rate limiter.

    Suitable for single-instance deployments.
    """

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._buckets: Dict[str, RateLimitState] = {}
        self._lock = asyncio.Lock()
        self._cleanup_interval = 300
        self._last_cleanup = time.time()

    def limit_for_path(self, path: str) -> Tuple[str, PathLimit]:
        """Return (scope, budget) that applies to a path."""
        for prefix, limit in self.config.path_limits.items():
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return prefix, limit
        return "*", PathLimit(requests=self.config.requests_per_minute, window_seconds=60)

    def _cleanup_old_buckets(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return

        longest = max(
            [60.0] + [limit.window_seconds for limit in self.config.path_limits.values()]
        )
        expired_keys = [
            key for key, state in self._buckets.items()
            if now - state.window_start > longest
        ]
        for key in expired_keys:
            del self._buckets[key]

        self._last_cleanup = now
        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired rate limit buckets")

    async def hit(self, identifier: str, path: str) -> Tuple[bool, int, float]:
        """
        Count one request.

        Args:
            identifier: Client identifier.
            path: Request path.

        Returns:
            Tuple of (allowed, remaining, seconds_until_reset).
        """
        scope, limit = self.limit_for_path(path)
        bucket_key = f"{identifier}:{scope}"

        async with self._lock:
            now = time.time()
            self._cleanup_old_buckets(now)

            state = self._buckets.get(bucket_key)
            if state is None or now - state.window_start >= limit.window_seconds:
                state = RateLimitState(window_start=now)
                self._buckets[bucket_key] = state

            reset_in = limit.window_seconds - (now - state.window_start)

            if state.request_count >= limit.requests:
                return False, 0, reset_in

            state.request_count += 1
            return True, limit.requests - state.request_count, reset_in

    def reset(self) -> None:
        """Forget all counters."""
        self._buckets.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting requests.
    """

    def __init__(
        self,
        app: FastAPI,
        config: Optional[RateLimitConfig] = None,
        limiter: Optional[InMemoryRateLimiter] = None,
    ):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.limiter = limiter or InMemoryRateLimiter(self.config)

    def _get_client_identifier(self, request: Request) -> str:
        if self.config.trust_proxy_headers:
            for header in self.config.trusted_proxy_headers:
                forwarded = request.headers.get(header)
                if forwarded:
                    # First IP in the chain is the client
                    return f"ip:{forwarded.split(',')[0].strip()}"

        if request.client:
            return f"ip:{request.client.host}"

        return "unknown"

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(excluded) for excluded in self.config.excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with rate limiting."""
        if not self.config.enabled or request.method == "OPTIONS" or self._is_excluded(request.url.path):
            return await call_next(request)

        identifier = self._get_client_identifier(request)
        allowed, remaining, reset_in = await self.limiter.hit(identifier, request.url.path)

        if not allowed:
            retry_after = int(reset_in) + 1
            logger.warning(f"Rate limit exceeded for {identifier} on {request.url.path}")
            exc = RateLimitError(retry_after=retry_after)
            return create_error_response(
                error=exc.error,
                message=exc.message,
                code=exc.code,
                status_code=exc.status_code,
                headers={
                    **exc.headers,
                    "X-Rate-Limit-Remaining": "0",
                    "X-Rate-Limit-Reset": str(int(time.time() + reset_in)),
                },
            )

        response = await call_next(request)

        response.headers["X-Rate-Limit-Remaining"] = str(remaining)
        response.headers["X-Rate-Limit-Reset"] = str(int(time.time() + reset_in))

        return response


def setup_rate_limiting(
    app: FastAPI,
    config: Optional[RateLimitConfig] = None,
) -> InMemoryRateLimiter:
    """
    Configure rate limiting middleware for the FastAPI application.

    Returns:
        The rate limiter instance (kept on app.state.rate_limiter).
    """
    if config is None:
        config = RateLimitConfig()

    limiter = InMemoryRateLimiter(config)
    app.add_middleware(RateLimitMiddleware, config=config, limiter=limiter)
    app.state.rate_limiter = limiter

    return limiter
