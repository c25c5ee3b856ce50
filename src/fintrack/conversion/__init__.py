"""
FINTRACK Currency Conversion Module

Cache-first exchange-rate lookup: Redis cache → ExchangeRate-API (with retries).
"""

from fintrack.conversion.cache import (
    InMemoryRateCache,
    RateCache,
    RateCacheError,
    RedisRateCache,
    build_rate_cache,
)
from fintrack.conversion.errors import (
    ConversionError,
    ConversionErrorKind,
    classify_provider_error,
)
from fintrack.conversion.http_client import ResilientHttpClient, RetryPolicy
from fintrack.conversion.service import CurrencyConversionService

__all__ = [
    "ConversionError",
    "ConversionErrorKind",
    "CurrencyConversionService",
    "InMemoryRateCache",
    "RateCache",
    "RateCacheError",
    "RedisRateCache",
    "ResilientHttpClient",
    "RetryPolicy",
    "build_rate_cache",
    "classify_provider_error",
]
