"""
Currency Conversion Service

Cache-first exchange-rate lookup used by every money-bearing entity.

    convert(amount, from, to)
    ├─ same currency      → amount (no I/O)
    ├─ cache hit          → amount × cached rate
    └─ cache miss         → provider fetch (with transport retries)
                            → SETEX rate → amount × rate

All failures are raised as ConversionError("Currency conversion failed: ...").
"""

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

import httpx

from fintrack.config import Settings, get_settings
from fintrack.conversion.cache import RateCache, RateCacheError
from fintrack.conversion.errors import ConversionError, ConversionErrorKind, provider_error
from fintrack.conversion.http_client import ResilientHttpClient
from fintrack.conversion.provider import ProviderFailure, decode_pair_payload

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

Amount = Decimal | int | float | str


def to_decimal(value: Amount) -> Decimal:
    """Convert to Decimal via ``str`` so floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_amount(value: Decimal) -> str:
    """
    Round half-up to cents and render with exactly two decimals.

    Precision grows with the magnitude, so any finite amount formats.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return f"{value.quantize(CENTS, rounding=ROUND_HALF_UP):.2f}"


def multiply(amount: Decimal, rate: Decimal) -> Decimal:
    """Exact ``amount × rate``; no rounding at context precision."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(amount.as_tuple().digits) + len(rate.as_tuple().digits))
        return amount * rate


def cache_key(from_currency: str, to_currency: str) -> str:
    return f"exchange_rate:{from_currency}:{to_currency}"


def _log_orphaned_fetch(task: "asyncio.Future[Decimal]") -> None:
    """Retrieve the outcome of a fetch whose caller was cancelled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Rate fetch failed after its caller was cancelled: {exc}")


class CurrencyConversionService:
    """
    Converts amounts between currencies using ExchangeRate-API pair rates.

    The cache and HTTP client are injected and owned by the caller (the app
    lifespan in production, fixtures in tests).
    """

    def __init__(
        self,
        cache: RateCache,
        http_client: ResilientHttpClient,
        settings: Settings | None = None,
    ):
        self.cache = cache
        self.http_client = http_client
        self.settings = settings or get_settings()

    @property
    def base_currency(self) -> str:
        return self.settings.base_currency

    async def convert(
        self,
        amount: Amount,
        from_currency: str,
        to_currency: str | None = None
    ) -> str:
        """
        Convert ``amount`` from ``from_currency`` into ``to_currency``.

        Args:
            amount: Amount in the source currency.
            from_currency: ISO 4217 source code.
            to_currency: ISO 4217 target code; defaults to the base currency.

        Returns:
            Converted amount as a string with exactly two decimals.

        Raises:
            ConversionError: On any failure; ``kind`` tells which.
        """
        if to_currency is None:
            to_currency = self.base_currency

        if not self.settings.exchange_rate_api_key:
            raise ConversionError(
                ConversionErrorKind.MISSING_CREDENTIALS,
                "Exchange Rate API key is missing",
                details={"hint": "Set EXCHANGE_RATE_API_KEY environment variable"}
            )
        if not from_currency or not to_currency:
            raise ConversionError(
                ConversionErrorKind.INVALID_CURRENCY_PAIR,
                "Invalid currency codes provided",
                details={"from_currency": from_currency, "to_currency": to_currency}
            )

        try:
            value = to_decimal(amount)
        except InvalidOperation as e:
            raise ConversionError(
                ConversionErrorKind.MALFORMED_REQUEST,
                f"Invalid amount: {amount!r}"
            ) from e
        if not value.is_finite():
            raise ConversionError(
                ConversionErrorKind.MALFORMED_REQUEST,
                f"Invalid amount: {amount!r}"
            )

        if from_currency == to_currency:
            return format_amount(value)

        rate = await self.get_rate(from_currency, to_currency)
        converted = format_amount(multiply(value, rate))
        logger.info(f"Converted {value} {from_currency} to {converted} {to_currency}")
        return converted

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Return the pair rate from cache, fetching it on a miss."""
        logger.info(f"Fetching exchange rate for {from_currency} to {to_currency}")
        key = cache_key(from_currency, to_currency)

        cached = await self._read_cache(key)
        if cached is not None:
            logger.info(f"Using cached exchange rate for {from_currency} to {to_currency}")
            return cached

        # Shielded: a completed fetch still warms the cache if the caller
        # is cancelled while waiting.
        fetch = asyncio.ensure_future(self._fetch_and_store(key, from_currency, to_currency))
        try:
            return await asyncio.shield(fetch)
        except asyncio.CancelledError:
            fetch.add_done_callback(_log_orphaned_fetch)
            raise

    async def _read_cache(self, key: str) -> Decimal | None:
        try:
            raw = await self.cache.get(key)
        except RateCacheError as e:
            logger.warning(f"Rate cache read failed, fetching from provider: {e}")
            return None
        if raw is None:
            return None
        try:
            return Decimal(raw)
        except InvalidOperation:
            logger.warning(f"Ignoring unparsable cached rate {raw!r} for {key}")
            return None

    async def _fetch_and_store(
        self,
        key: str,
        from_currency: str,
        to_currency: str
    ) -> Decimal:
        payload = await self._fetch_pair(from_currency, to_currency)
        result = decode_pair_payload(payload)

        if isinstance(result, ProviderFailure):
            logger.error(
                f"API Error for {from_currency}->{to_currency}: {result.error_type}"
            )
            raise provider_error(result.error_type)

        if result.rate is None or result.rate <= 0:
            raise ConversionError(
                ConversionErrorKind.RATE_UNAVAILABLE,
                f"Exchange rate for {to_currency} not available",
                details={"from_currency": from_currency, "to_currency": to_currency}
            )

        try:
            await self.cache.setex(key, self.settings.rate_cache_ttl_seconds, str(result.rate))
        except RateCacheError as e:
            logger.warning(f"Rate cache write failed for {key}: {e}")

        return result.rate

    def _pair_url(self, from_currency: str, to_currency: str) -> str:
        base_url = self.settings.exchange_rate_base_url.rstrip("/")
        api_key = self.settings.exchange_rate_api_key
        return f"{base_url}/{api_key}/pair/{from_currency}/{to_currency}"

    async def _fetch_pair(self, from_currency: str, to_currency: str) -> Any:
        """
        Request the pair from the provider.

        4xx responses carrying a JSON error body are returned as payloads so
        they go through the classifier; every other failure becomes
        TRANSPORT_FAILURE (or UNKNOWN for an undecodable success body).
        """
        try:
            return await self.http_client.get_json(self._pair_url(from_currency, to_currency))

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            try:
                body = e.response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and "result" in body:
                return body
            logger.error(f"HTTP error {status_code} for {from_currency}->{to_currency}")
            raise ConversionError(
                ConversionErrorKind.TRANSPORT_FAILURE,
                f"HTTP error: {status_code}",
                details={"status_code": status_code}
            ) from e

        except httpx.HTTPError as e:
            logger.error(f"Transport error for {from_currency}->{to_currency}: {e!r}")
            raise ConversionError(
                ConversionErrorKind.TRANSPORT_FAILURE,
                str(e) or type(e).__name__,
            ) from e

        except ValueError as e:
            logger.error(f"Undecodable provider response for {from_currency}->{to_currency}")
            raise ConversionError(
                ConversionErrorKind.UNKNOWN,
                "Provider returned an invalid response body",
            ) from e
