"""
Rate cache tests: in-memory expiry and the Redis adapter against a stub client.
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from conftest import make_settings
from fintrack.conversion.cache import (
    InMemoryRateCache,
    RateCache,
    RateCacheError,
    RedisRateCache,
    build_rate_cache,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class StubRedis:
    """Just enough of redis.asyncio.Redis for RedisRateCache."""

    def __init__(self, fail_with: Exception | None = None):
        self.store: dict[str, str] = {}
        self.setex_calls: list[tuple[str, int, str]] = []
        self.fail_with = fail_with
        self.closed = False

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def ping(self):
        self._maybe_fail()
        return True

    async def get(self, key):
        self._maybe_fail()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._maybe_fail()
        self.setex_calls.append((key, ttl, value))
        self.store[key] = value

    async def aclose(self):
        self.closed = True


class TestInMemoryRateCache:

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = InMemoryRateCache(clock=self.clock)

    def test_satisfies_protocol(self):
        assert isinstance(self.cache, RateCache)

    def test_get_missing(self):
        assert asyncio.run(self.cache.get("exchange_rate:EUR:USD")) is None

    def test_setex_then_get(self):
        async def scenario():
            await self.cache.setex("k", 36000, "1.2")
            return await self.cache.get("k")

        assert asyncio.run(scenario()) == "1.2"
        assert self.cache.ttl("k") == 36000

    def test_entry_expires(self):
        asyncio.run(self.cache.setex("k", 10, "1.2"))

        self.clock.now += 9
        assert asyncio.run(self.cache.get("k")) == "1.2"

        self.clock.now += 1
        assert asyncio.run(self.cache.get("k")) is None
        assert self.cache.ttl("k") is None

    def test_overwrite_resets_ttl(self):
        asyncio.run(self.cache.setex("k", 10, "1.2"))
        self.clock.now += 8
        asyncio.run(self.cache.setex("k", 10, "1.3"))
        self.clock.now += 8

        assert asyncio.run(self.cache.get("k")) == "1.3"

    def test_close_drops_everything(self):
        async def scenario():
            await self.cache.setex("k", 10, "1.2")
            await self.cache.close()
            return await self.cache.get("k")

        assert asyncio.run(scenario()) is None


class TestRedisRateCache:

    def test_get_and_setex_delegate(self):
        stub = StubRedis()
        cache = RedisRateCache("redis://test", client=stub)

        async def scenario():
            await cache.connect()
            await cache.setex("exchange_rate:EUR:USD", 36000, "1.2")
            return await cache.get("exchange_rate:EUR:USD")

        assert asyncio.run(scenario()) == "1.2"
        assert stub.setex_calls == [("exchange_rate:EUR:USD", 36000, "1.2")]

    def test_connect_failure(self):
        cache = RedisRateCache("redis://test", client=StubRedis(fail_with=RedisConnectionError("refused")))

        with pytest.raises(RateCacheError, match="unreachable"):
            asyncio.run(cache.connect())

    @pytest.mark.parametrize("error", [RedisConnectionError("down"), RedisTimeoutError("slow")])
    def test_operation_errors_wrapped(self, error):
        cache = RedisRateCache("redis://test", client=StubRedis(fail_with=error))

        with pytest.raises(RateCacheError):
            asyncio.run(cache.get("k"))
        with pytest.raises(RateCacheError):
            asyncio.run(cache.setex("k", 1, "1"))

    def test_ping_reports_failure(self):
        cache = RedisRateCache("redis://test", client=StubRedis(fail_with=RedisConnectionError("down")))
        assert asyncio.run(cache.ping()) is False

    def test_not_connected(self):
        cache = RedisRateCache("redis://test")

        with pytest.raises(RateCacheError, match="not connected"):
            asyncio.run(cache.get("k"))
        assert asyncio.run(cache.ping()) is False

    def test_close(self):
        stub = StubRedis()
        cache = RedisRateCache("redis://test", client=stub)

        asyncio.run(cache.close())

        assert stub.closed
        with pytest.raises(RateCacheError):
            asyncio.run(cache.get("k"))


class TestBuildRateCache:

    def test_redis_when_url_set(self):
        cache = build_rate_cache(make_settings(redis_url="redis://cache:6379/1", redis_socket_timeout=2.0))

        assert isinstance(cache, RedisRateCache)
        assert cache.url == "redis://cache:6379/1"
        assert cache.socket_timeout == 2.0

    def test_in_memory_without_url(self):
        assert isinstance(build_rate_cache(make_settings(redis_url="")), InMemoryRateCache)
