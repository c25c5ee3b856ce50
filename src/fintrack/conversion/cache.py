"""
Exchange Rate Cache

Process-wide key/value store for fetched rates. Values are decimal strings
written with SETEX, so every entry expires on its own. The cache is
disposable: losing it only costs provider round-trips.
"""

import logging
import time
from typing import Callable, Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from fintrack.config import Settings

logger = logging.getLogger(__name__)


class RateCacheError(Exception):
    """Cache backend unreachable or failed mid-operation."""


@runtime_checkable
class RateCache(Protocol):
    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None: ...

    async def ping(self) -> bool: ...


class RedisRateCache:
    """
    Redis-backed rate cache.

    Socket timeouts are always set so a stalled Redis cannot hang a request.
    """

    def __init__(
        self,
        url: str,
        socket_timeout: float = 5.0,
        client: aioredis.Redis | None = None,
    ):
        self.url = url
        self.socket_timeout = socket_timeout
        self._client: aioredis.Redis | None = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisRateCache":
        return cls(settings.redis_url, socket_timeout=settings.redis_socket_timeout)

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise RateCacheError("Rate cache is not connected")
        return self._client

    async def connect(self) -> None:
        """Create the client (if not injected) and verify the connection."""
        if self._client is None:
            self._client = aioredis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
            )
        try:
            await self._client.ping()
        except RedisError as e:
            raise RateCacheError(f"Redis unreachable at {self.url}: {e}") from e
        logger.info(f"Rate cache connected: {self.url}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Rate cache closed")

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise RateCacheError(f"GET {key} failed: {e}") from e

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        try:
            await self.client.setex(key, ttl_seconds, value)
        except RedisError as e:
            raise RateCacheError(f"SETEX {key} failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, RateCacheError) as e:
            logger.error(f"Rate cache ping failed: {e}")
            return False


class InMemoryRateCache:
    """
    Dict-backed cache with per-key expiry.

    Used when no Redis is configured and as the fake in tests. ``clock`` must
    be monotonic seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        self._entries.clear()

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def ping(self) -> bool:
        return True

    def ttl(self, key: str) -> float | None:
        """Seconds left for ``key``, or None if absent/expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        remaining = entry[1] - self._clock()
        return remaining if remaining > 0 else None


def build_rate_cache(settings: Settings) -> RateCache:
    """Redis when REDIS_URL is set, in-memory otherwise."""
    if settings.redis_url:
        return RedisRateCache.from_settings(settings)
    logger.warning("REDIS_URL not set, using in-memory rate cache")
    return InMemoryRateCache()
