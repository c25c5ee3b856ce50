"""
ExchangeRate-API Pair Payload Decoding

Response format:
    {"result": "success", "base_code": "EUR", "target_code": "USD", "conversion_rate": 1.2}
    {"result": "error", "error-type": "invalid-key"}

``conversion_rate`` is units of the target currency per one unit of the base
currency, so converted = amount * rate.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Union


@dataclass(frozen=True)
class RateQuote:
    """Successful lookup. ``rate`` is None when the provider omitted it."""
    rate: Decimal | None


@dataclass(frozen=True)
class ProviderFailure:
    """Provider-reported (or undecodable) failure."""
    error_type: str | None


ProviderResult = Union[RateQuote, ProviderFailure]


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a JSON number to Decimal through its string form."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        return None
    if not rate.is_finite():
        return None
    return rate


def decode_pair_payload(payload: Any) -> ProviderResult:
    """
    Decode a ``/pair/<FROM>/<TO>`` response body.

    Anything that is not a dict with ``result == "success"`` is a
    ProviderFailure; a failure without an ``error-type`` string carries None
    so the classifier treats it as unknown.
    """
    if not isinstance(payload, dict):
        return ProviderFailure(error_type=None)

    if payload.get("result") == "success":
        return RateQuote(rate=_to_decimal(payload.get("conversion_rate")))

    error_type = payload.get("error-type")
    if not isinstance(error_type, str):
        error_type = None
    return ProviderFailure(error_type=error_type)
