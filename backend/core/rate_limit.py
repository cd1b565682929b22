"""
Rate Limiting Module
Redis-based sliding window rate limiting for FastAPI endpoints, with an
in-process fallback when Redis cannot be reached.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Optional

import redis.asyncio as aioredis
from fastapi import Depends, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from backend.core.config import settings
from backend.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)


class RateLimitTier(str, Enum):
    """Rate limit tiers for different endpoint types."""

    AUTH = "auth"  # Login, register, resend verification
    UPLOAD = "upload"  # Proposal submission with file uploads
    STANDARD = "standard"


@dataclass
class RateLimitConfig:
    requests: int
    window: int  # seconds


RATE_LIMIT_CONFIGS: dict[RateLimitTier, RateLimitConfig] = {
    RateLimitTier.AUTH: RateLimitConfig(
        requests=settings.rate_limit_auth_requests,
        window=settings.rate_limit_auth_window,
    ),
    RateLimitTier.UPLOAD: RateLimitConfig(
        requests=settings.rate_limit_upload_requests,
        window=settings.rate_limit_upload_window,
    ),
    RateLimitTier.STANDARD: RateLimitConfig(
        requests=settings.rate_limit_standard_requests,
        window=settings.rate_limit_standard_window,
    ),
}


class RedisRateLimiter:
    """
    Sliding window limiter backed by a Redis sorted set of request timestamps,
    shared by every API worker.
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = None

    async def get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def is_rate_limited(self, key: str, limit: int, window: int) -> tuple[bool, int, int]:
        """
        Record a request against ``key`` and report whether it exceeds the limit.

        Returns:
            Tuple of (is_limited, remaining_requests, retry_after_seconds)
        """
        redis = await self.get_redis()
        now = time.time()

        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, "-inf", now - window)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, window + 1)
        pipe.zrange(key, 0, 0, withscores=True)
        results = await pipe.execute()

        current_count = results[1]
        oldest_entries = results[4]

        is_limited = current_count >= limit
        remaining = max(0, limit - current_count - 1)
        retry_after = 0
        if is_limited and oldest_entries:
            retry_after = int(window - (now - oldest_entries[0][1])) + 1

        return is_limited, remaining, retry_after


class InMemoryRateLimiter:
    """
    Per-process sliding window limiter.

    Only used while Redis is unreachable; limits are not shared between workers.
    Keys with no request left inside their window are swept periodically.
    """

    def __init__(self, cleanup_interval: int = 60):
        self._requests: dict[str, list[float]] = {}
        self._windows: dict[str, int] = {}
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval

    def __len__(self) -> int:
        return len(self._requests)

    def _cleanup_if_needed(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        for key in list(self._requests):
            window = self._windows.get(key, 0)
            timestamps = [ts for ts in self._requests[key] if ts > now - window]
            if timestamps:
                self._requests[key] = timestamps
            else:
                del self._requests[key]
                self._windows.pop(key, None)

    async def is_rate_limited(self, key: str, limit: int, window: int) -> tuple[bool, int, int]:
        now = time.time()
        self._cleanup_if_needed(now)

        timestamps = [ts for ts in self._requests.get(key, []) if ts > now - window]
        self._windows[key] = window

        if len(timestamps) >= limit:
            self._requests[key] = timestamps
            retry_after = int(window - (now - min(timestamps))) + 1
            return True, 0, retry_after

        timestamps.append(now)
        self._requests[key] = timestamps
        return False, max(0, limit - len(timestamps)), 0


_rate_limiter: Optional[RedisRateLimiter] = None
_fallback_limiter = InMemoryRateLimiter()
_redis_available: bool = True


def get_rate_limiter() -> RedisRateLimiter:
    """Get the global Redis rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RedisRateLimiter(settings.redis_url)
    return _rate_limiter


async def close_rate_limiter() -> None:
    """Close the global rate limiter connection."""
    global _rate_limiter
    if _rate_limiter:
        await _rate_limiter.close()
        _rate_limiter = None


def get_client_identifier(request: Request) -> str:
    """Authenticated user id when known, otherwise the client IP."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user_{user_id}"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip_{forwarded_for.split(',')[0].strip()}"
    return f"ip_{request.client.host if request.client else 'unknown'}"


class RateLimitDependency:
    """
    FastAPI dependency enforcing one rate limit tier.

    Usage:
        @router.post("/login")
        async def login(_: RateLimitAuth, ...):
            ...
    """

    def __init__(self, tier: RateLimitTier = RateLimitTier.STANDARD):
        self.tier = tier

    async def __call__(self, request: Request) -> None:
        global _redis_available

        if not settings.rate_limit_enabled:
            return

        config = RATE_LIMIT_CONFIGS[self.tier]
        key = f"rate_limit:{self.tier.value}:{get_client_identifier(request)}"

        try:
            result = await get_rate_limiter().is_rate_limited(key, config.requests, config.window)
            _redis_available = True
        except Exception as e:
            if _redis_available:
                logger.warning(f"Redis rate limiting unavailable, using in-memory fallback: {e}")
                _redis_available = False
            result = await _fallback_limiter.is_rate_limited(key, config.requests, config.window)

        is_limited, remaining, retry_after = result
        reset_at = int(time.time()) + config.window

        request.state.rate_limit_limit = config.requests
        request.state.rate_limit_remaining = remaining
        request.state.rate_limit_reset = reset_at

        if is_limited:
            error = RateLimitError(f"Too many requests. Please retry after {retry_after} seconds.")
            error.headers = {
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(config.requests),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset_at),
            }
            raise error


RateLimitAuth = Annotated[None, Depends(RateLimitDependency(RateLimitTier.AUTH))]
RateLimitUpload = Annotated[None, Depends(RateLimitDependency(RateLimitTier.UPLOAD))]
RateLimitStandard = Annotated[None, Depends(RateLimitDependency(RateLimitTier.STANDARD))]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Adds X-RateLimit-* headers when a rate limit dependency ran for the request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        if hasattr(request.state, "rate_limit_limit"):
            response.headers["X-RateLimit-Limit"] = str(request.state.rate_limit_limit)
            response.headers["X-RateLimit-Remaining"] = str(getattr(request.state, "rate_limit_remaining", 0))
            response.headers["X-RateLimit-Reset"] = str(getattr(request.state, "rate_limit_reset", 0))

        return response
