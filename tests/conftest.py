"""
Shared fixtures: a scripted ExchangeRate-API fake on httpx.MockTransport,
a call-recording in-memory cache, and a sleep recorder for retry delays.
"""

import httpx
import pytest

from fintrack.config import Settings
from fintrack.conversion import CurrencyConversionService, InMemoryRateCache, ResilientHttpClient, RetryPolicy

API_KEY = "test-api-key"


def success(rate):
    return httpx.Response(200, json={"result": "success", "conversion_rate": rate})


def provider_error(error_type, status_code=400):
    return httpx.Response(status_code, json={"result": "error", "error-type": error_type})


class FakeProvider:
    """
    httpx MockTransport handler.

    Each request consumes the next scripted item; the last item repeats.
    Items are responses, exceptions, or callables taking the request.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            # Fresh copy per request; the client rebinds streams on each send
            return httpx.Response(item.status_code, content=item.content, headers=item.headers)
        return item(request)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


class RecordingCache(InMemoryRateCache):
    """InMemoryRateCache that records every get/setex."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gets: list[str] = []
        self.writes: list[tuple[str, int, str]] = []

    async def get(self, key):
        self.gets.append(key)
        return await super().get(key)

    async def setex(self, key, ttl_seconds, value):
        self.writes.append((key, ttl_seconds, value))
        await super().setex(key, ttl_seconds, value)


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_settings(**overrides) -> Settings:
    values = {
        "exchange_rate_api_key": API_KEY,
        "base_currency": "USD",
        "redis_url": "",
    }
    values.update(overrides)
    return Settings(**values)


def make_http_client(provider: FakeProvider, sleep=None, max_retries: int = 3) -> ResilientHttpClient:
    return ResilientHttpClient(
        policy=RetryPolicy(max_retries=max_retries),
        client=httpx.AsyncClient(transport=httpx.MockTransport(provider)),
        sleep=sleep or SleepRecorder(),
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def cache():
    return RecordingCache()


@pytest.fixture
def make_service(settings, cache, sleeps):
    """Build a CurrencyConversionService around a scripted provider."""

    def _make(*script, settings_override=None, cache_override=None):
        provider = FakeProvider(*(script or (success(1.0),)))
        service = CurrencyConversionService(
            cache_override or cache,
            make_http_client(provider, sleep=sleeps),
            settings_override or settings,
        )
        return service, provider

    return _make
