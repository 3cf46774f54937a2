"""Tests for RateLimiter"""

import logging

import pytest
from unittest.mock import AsyncMock, Mock
from redis.exceptions import ConnectionError as RedisConnectionError


def make_redis(*counts):
    client = Mock()
    script = AsyncMock(side_effect=list(counts))
    client.register_script.return_value = script
    client.aclose = AsyncMock()
    return client, script


class TestRateLimiter:
    def test_registers_script(self):
        from recall.common.rate_limiter import INCR_WITH_EXPIRY, RateLimiter

        client, _ = make_redis()
        RateLimiter(client)

        client.register_script.assert_called_once_with(INCR_WITH_EXPIRY)

    @pytest.mark.asyncio
    async def test_hit_uses_prefixed_key_and_window(self):
        from recall.common.rate_limiter import RateLimiter

        client, script = make_redis(1)
        limiter = RateLimiter(client)

        assert await limiter.hit("openai_synthesis", 60) == 1
        script.assert_awaited_once_with(keys=["rate:openai_synthesis"], args=[60])

    @pytest.mark.asyncio
    async def test_limited_only_past_quota(self):
        from recall.common.rate_limiter import RateLimiter

        client, _ = make_redis(2, 3)
        limiter = RateLimiter(client)

        assert await limiter.is_rate_limited("b", limit=2, window_seconds=60) is False
        assert await limiter.is_rate_limited("b", limit=2, window_seconds=60) is True

    @pytest.mark.asyncio
    async def test_check_raises(self, caplog):
        from recall.common.errors import RateLimitExceeded
        from recall.common.rate_limiter import RateLimiter

        client, _ = make_redis(51)
        limiter = RateLimiter(client)

        with caplog.at_level(logging.WARNING, logger="recall.common.rate_limiter"):
            with pytest.raises(RateLimitExceeded, match="Please try again later") as exc_info:
                await limiter.check("openai_synthesis", 50, 60)

        assert exc_info.value.bucket == "openai_synthesis"
        assert "Rate limit exceeded" in caplog.text

    @pytest.mark.asyncio
    async def test_store_outage_fails_open(self, caplog):
        from recall.common.rate_limiter import RateLimiter

        client, _ = make_redis(RedisConnectionError("connection refused"))
        limiter = RateLimiter(client)

        with caplog.at_level(logging.ERROR, logger="recall.common.rate_limiter"):
            assert await limiter.is_rate_limited("b", 1, 60) is False

        assert "connection refused" in caplog.text

    @pytest.mark.asyncio
    async def test_close(self):
        from recall.common.rate_limiter import RateLimiter

        client, _ = make_redis()
        await RateLimiter(client).close()

        client.aclose.assert_awaited_once()
