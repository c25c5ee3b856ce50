"""
Currency Conversion Errors

Every failure inside the conversion subsystem surfaces as a single
ConversionError envelope. The specific reason is kept on ``kind`` and
``cause``; the originating exception (if any) is chained as ``__cause__``.
"""

from enum import Enum
from typing import Any


class ConversionErrorKind(str, Enum):
    """Reasons a conversion can fail. All of them are terminal for the call."""
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    INVALID_CURRENCY_PAIR = "INVALID_CURRENCY_PAIR"
    UNSUPPORTED_CODE = "UNSUPPORTED_CODE"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    INVALID_KEY = "INVALID_KEY"
    INACTIVE_ACCOUNT = "INACTIVE_ACCOUNT"
    QUOTA_REACHED = "QUOTA_REACHED"
    RATE_UNAVAILABLE = "RATE_UNAVAILABLE"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    UNKNOWN = "UNKNOWN"


class ProviderErrorCode(str, Enum):
    """Values of the ``error-type`` field returned by ExchangeRate-API."""
    UNSUPPORTED_CODE = "unsupported-code"
    MALFORMED_REQUEST = "malformed-request"
    INVALID_KEY = "invalid-key"
    INACTIVE_ACCOUNT = "inactive-account"
    QUOTA_REACHED = "quota-reached"
    UNKNOWN_CODE = "unknown-code"


_PROVIDER_CODE_TO_KIND: dict[ProviderErrorCode, ConversionErrorKind] = {
    ProviderErrorCode.UNSUPPORTED_CODE: ConversionErrorKind.UNSUPPORTED_CODE,
    ProviderErrorCode.MALFORMED_REQUEST: ConversionErrorKind.MALFORMED_REQUEST,
    ProviderErrorCode.INVALID_KEY: ConversionErrorKind.INVALID_KEY,
    ProviderErrorCode.INACTIVE_ACCOUNT: ConversionErrorKind.INACTIVE_ACCOUNT,
    ProviderErrorCode.QUOTA_REACHED: ConversionErrorKind.QUOTA_REACHED,
    ProviderErrorCode.UNKNOWN_CODE: ConversionErrorKind.UNKNOWN,
}

PROVIDER_ERROR_MESSAGES: dict[ConversionErrorKind, str] = {
    ConversionErrorKind.UNSUPPORTED_CODE: "The supplied currency code is not supported.",
    ConversionErrorKind.MALFORMED_REQUEST: (
        "The request structure is invalid. Please check the request format."
    ),
    ConversionErrorKind.INVALID_KEY: "The provided API key is invalid.",
    ConversionErrorKind.INACTIVE_ACCOUNT: (
        "Your account is inactive. Please confirm your email address."
    ),
    ConversionErrorKind.QUOTA_REACHED: (
        "Your account has reached the maximum number of requests allowed by your plan."
    ),
    ConversionErrorKind.UNKNOWN: (
        "An unknown error occurred. Please refer to the API documentation."
    ),
}


class ConversionError(Exception):
    """
    Uniform envelope for conversion failures.

    ``str(error)`` is always ``"Currency conversion failed: <cause>"``.
    """

    PREFIX = "Currency conversion failed: "

    def __init__(
        self,
        kind: ConversionErrorKind,
        cause: str,
        details: dict[str, Any] | None = None
    ):
        super().__init__(f"{self.PREFIX}{cause}")
        self.kind = kind
        self.cause = cause
        self.details = details or {}

    def __repr__(self) -> str:
        return f"ConversionError(kind={self.kind.value}, cause={self.cause!r})"


def classify_provider_error(error_type: str | None) -> ConversionErrorKind:
    """
    Map a provider ``error-type`` string to a ConversionErrorKind.

    Unrecognised or missing codes map to UNKNOWN.
    """
    try:
        code = ProviderErrorCode(error_type)
    except ValueError:
        return ConversionErrorKind.UNKNOWN
    return _PROVIDER_CODE_TO_KIND[code]


def provider_error(error_type: str | None) -> ConversionError:
    """Build the ConversionError for a provider-reported failure."""
    kind = classify_provider_error(error_type)
    return ConversionError(
        kind=kind,
        cause=PROVIDER_ERROR_MESSAGES[kind],
        details={"error_type": error_type}
    )
