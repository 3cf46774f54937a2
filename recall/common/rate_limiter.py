"""
Rate Limiter

Fixed quota per rolling window, shared across every process that talks to
the same Redis. The counter lives at ``rate:{bucket}``; increment and expiry
run as one Lua script so concurrent callers cannot leave a counter without
a TTL.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .errors import RateLimitExceeded

logger = logging.getLogger("recall.common.rate_limiter")

KEY_PREFIX = "rate:"

# Expiry is set only when the counter is created, so the window starts at
# the first request and the key disappears when it ends.
INCR_WITH_EXPIRY = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RateLimiter:
    """
    Sliding-window request counter backed by Redis.

    Usage:
        limiter = RateLimiter.from_url("redis://localhost:6379/0")
        await limiter.check("openai_synthesis", limit=50, window_seconds=60)
        await limiter.close()
    """

    def __init__(self, redis_client):
        """
        Args:
            redis_client: redis.asyncio.Redis (or compatible) instance
        """
        self._redis = redis_client
        self._script = redis_client.register_script(INCR_WITH_EXPIRY)

    @classmethod
    def from_url(cls, url: str) -> "RateLimiter":
        return cls(aioredis.from_url(url))

    async def hit(self, bucket: str, window_seconds: int) -> int:
        """Count one request against a bucket and return the window's total."""
        return int(await self._script(keys=[KEY_PREFIX + bucket], args=[window_seconds]))

    async def is_rate_limited(self, bucket: str, limit: int, window_seconds: int) -> bool:
        """
        Record a request and report whether the bucket is over quota.

        A store outage fails open: the request is allowed and the error logged.
        """
        try:
            count = await self.hit(bucket, window_seconds)
        except RedisError as e:
            logger.error("Rate limit check failed for '%s': %s", bucket, e)
            return False
        return count > limit

    async def check(self, bucket: str, limit: int, window_seconds: int) -> None:
        """
        Raises:
            RateLimitExceeded: when the quota for the current window is used up
        """
        if await self.is_rate_limited(bucket, limit, window_seconds):
            logger.warning("Rate limit exceeded for '%s'", bucket)
            raise RateLimitExceeded(bucket, limit, window_seconds)

    async def close(self) -> None:
        await self._redis.aclose()
