"""
Resilient HTTP Client

GET-JSON wrapper around httpx.AsyncClient with an explicit retry policy
driven by tenacity. Only raw transport failures are retried (HTTP 500 or a
timeout); 4xx responses, other status codes and undecodable bodies fail on
the first attempt.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from fintrack.config import Settings

logger = logging.getLogger(__name__)


def linear_delay(retry_number: int) -> float:
    """Seconds to wait before retry ``n``: 1s, 2s, 3s, ..."""
    return float(retry_number)


def is_retryable(exc: BaseException) -> bool:
    """Retry on HTTP 500 responses and on timeouts, nothing else."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 500
    return isinstance(exc, httpx.TimeoutException)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry behaviour for ResilientHttpClient.

    Attributes:
        max_retries: Extra attempts after the first one.
        delay: Maps the retry number (1-based) to a wait in seconds.
        should_retry: Predicate deciding whether an exception is retried.
    """
    max_retries: int = 3
    delay: Callable[[int], float] = field(default=linear_delay)
    should_retry: Callable[[BaseException], bool] = field(default=is_retryable)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class ResilientHttpClient:
    """
    Outbound JSON client with bounded retries.

    An injected ``httpx.AsyncClient`` stays owned by the caller; otherwise the
    wrapper creates one with the configured per-attempt timeout and closes it
    in ``aclose()``.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResilientHttpClient":
        return cls(
            policy=RetryPolicy(max_retries=settings.http_max_retries),
            timeout=settings.http_timeout_seconds,
        )

    async def __aenter__(self) -> "ResilientHttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.policy.delay(retry_state.attempt_number)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        # URLs carry the API key, so only the error type is logged
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Retrying request... Attempt #{retry_state.attempt_number} "
            f"(last error: {type(exc).__name__})"
        )

    async def get_json(self, url: str) -> Any:
        """
        GET ``url`` and decode the JSON body.

        Raises:
            httpx.HTTPStatusError: Non-2xx response (after retries for 500).
            httpx.TransportError: Network failure (after retries for timeouts).
            ValueError: Body is not valid JSON.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.policy.should_retry),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._client.get(url)
                response.raise_for_status()
                return response.json()
