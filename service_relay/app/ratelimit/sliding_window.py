"""
Sliding window rate limiter for the relay.

Each identifier owns a Redis sorted set of admitted-call timestamps (ms). A Lua
script trims entries older than the window, counts what is left and, if the
count is under the limit, records the new call, all in one atomic round trip.
Nothing is cached in-process, so every relay instance sharing the Redis sees
the same counts.
"""

import math
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis

from shared.errors import InternalError
from shared.logging import get_logger

KEY_PREFIX = "relay:ratelimit:"

SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)

local remaining = limit - count
if remaining < 0 then
  remaining = 0
end

local allowed = 0
if count < limit then
  redis.call('ZADD', key, now, member)
  redis.call('PEXPIRE', key, window)
  allowed = 1
end

local reset = now + window
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
if oldest[2] then
  reset = tonumber(oldest[2]) + window
end

return {allowed, remaining, reset}
"""


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one limiter check.

    ``remaining`` is the quota left before this call was counted; ``reset`` is
    the unix time in ms at which the oldest counted call leaves the window.
    """

    success: bool
    limit: int
    remaining: int
    reset: int

    @property
    def reset_time(self) -> str:
        return datetime.fromtimestamp(self.reset / 1000, tz=timezone.utc).isoformat(timespec="milliseconds")


def retry_after_seconds(reset_ms: int, now_ms: Optional[int] = None) -> int:
    """Whole seconds until ``reset_ms``, never negative."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return max(0, math.ceil((reset_ms - now_ms) / 1000))


class SlidingWindowRateLimiter:
    """Distributed sliding window rate limiter using Redis."""

    def __init__(self, redis_url: str, max_requests: int = 1, window_seconds: int = 60):
        self.redis_url = redis_url
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.logger = get_logger("relay.rate_limiter")
        self._redis: Optional[redis.Redis] = None
        self._script = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, identifier: str) -> str:
        """Generate rate limit key."""
        return f"{KEY_PREFIX}{identifier}"

    async def limit(self, identifier: str, now_ms: Optional[int] = None) -> RateLimitDecision:
        """Check and, if admitted, consume one unit of quota for ``identifier``."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        window_ms = self.window_seconds * 1000

        try:
            redis_client = await self._get_redis()
            if self._script is None:
                self._script = redis_client.register_script(SLIDING_WINDOW_LUA)
            result = await self._script(
                keys=[self._make_key(identifier)],
                args=[now_ms, window_ms, self.max_requests, f"{now_ms}-{uuid.uuid4().hex}"],
            )
        except Exception as e:
            self.logger.error("Rate limit check error", identifier=identifier, error=str(e))
            raise InternalError("Rate limiter unavailable", details=str(e)) from e

        allowed, remaining, reset = (int(value) for value in result)
        decision = RateLimitDecision(
            success=bool(allowed),
            limit=self.max_requests,
            remaining=remaining,
            reset=reset,
        )

        if not decision.success:
            self.logger.warning(
                "Rate limit exceeded",
                identifier=identifier,
                limit=self.max_requests,
                reset=reset,
            )
        return decision

    async def reset(self, identifier: str) -> None:
        """Forget all counted calls for ``identifier``."""
        redis_client = await self._get_redis()
        await redis_client.delete(self._make_key(identifier))
        self.logger.info("Rate limit reset", identifier=identifier)

    async def ping(self) -> bool:
        """True when the counter store answers."""
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as e:
            self.logger.warning("Rate limiter ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self._script = None


# Process-wide limiter, created on first use
_rate_limiter: Optional[SlidingWindowRateLimiter] = None


def get_rate_limiter(redis_url: str, max_requests: int = 1, window_seconds: int = 60) -> SlidingWindowRateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter(redis_url, max_requests, window_seconds)
    return _rate_limiter


async def close_rate_limiter() -> None:
    """Close and drop the global rate limiter."""
    global _rate_limiter
    if _rate_limiter is not None:
        await _rate_limiter.close()
        _rate_limiter = None
