"""
FINTRACK API Module
"""

from fintrack.api.routes import conversion_error_handler, router
from fintrack.api.schemas import (
    ConversionResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "router",
    "conversion_error_handler",
    "ConversionResponse",
    "HealthResponse",
    "ErrorResponse",
]
