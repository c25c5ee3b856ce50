"""
FINTRACK API Response Schemas

Money values are serialized as strings with exactly two decimals.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.ledger.models import Transaction


class ConversionResponse(BaseModel):
    """Response schema for /api/v1/convert"""
    amount: str = Field(description="Amount as requested")
    from_currency: str
    to_currency: str
    converted_amount: str = Field(
        description="Converted amount, two decimals",
        pattern=r"^-?\d+\.\d{2}$",
        examples=["120.00"]
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "amount": "100",
                "from_currency": "EUR",
                "to_currency": "USD",
                "converted_amount": "120.00"
            }
        }
    }


class TransactionListResponse(BaseModel):
    total: int
    page: int
    limit: int
    transactions: list[Transaction]


class SpendRequest(BaseModel):
    amount: str = Field(description="Spent amount as a decimal string", examples=["25.50"])
    currency: str = Field(min_length=3, max_length=3)


class SpendResponse(BaseModel):
    id: UUID
    spent: str
    exceeded: bool
    message: str


class RemainingResponse(BaseModel):
    id: UUID
    remaining_percentage: str


class HealthResponse(BaseModel):
    """Health check response for /api/v1/health"""
    status: str = Field(description="Service health status")
    version: str = Field(description="API version")
    cache: str = Field(description="Rate cache connection status")
    base_currency: str


class ErrorDetail(BaseModel):
    """Error detail information."""
    code: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details"
    )
    timestamp: datetime = Field(description="Error timestamp")


class ErrorResponse(BaseModel):
    """Uniform error body."""
    error: ErrorDetail

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": {
                    "code": "FINTRACK_CONVERSION_FAILED",
                    "message": "Currency conversion failed: The provided API key is invalid.",
                    "details": {"kind": "INVALID_KEY"},
                    "timestamp": "2026-01-15T15:30:00Z"
                }
            }
        }
    }


class SavingsRequest(BaseModel):
    amount: str = Field(description="Contribution as a decimal string", examples=["150.00"])
    currency: str = Field(min_length=3, max_length=3)


class ProgressResponse(BaseModel):
    id: UUID
    saved_amount: str
    target_amount: str
    currency: str
    progress: str = Field(description="Saved share of the target in percent", examples=["42.50"])
    is_completed: bool
