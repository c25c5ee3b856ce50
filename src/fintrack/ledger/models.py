"""
FINTRACK Ledger Models

Transactions, budgets and goals. Every monetary entity keeps its original
amount and currency alongside ``base_amount`` in the base currency.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(v: Any) -> Decimal | None:
    if v is None:
        return None
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def _currency_code(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().upper()
    return v


def as_utc(v: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC so comparisons never mix kinds."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


# === Enums ===

class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Recurrence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Category(str, Enum):
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    BILLS = "Bills"
    SHOPPING = "Shopping"
    SALARY = "Salary"
    INVESTMENT = "Investment"
    OTHER = "Other"


# === Transactions ===

class TransactionCreate(BaseModel):
    """Payload for recording a new transaction."""
    type: TransactionType
    amount: Decimal = Field(gt=Decimal("0"))
    currency: str = Field(min_length=3, max_length=3)
    category: Category
    tags: list[str] = Field(default_factory=list)
    comments: str | None = Field(default=None, max_length=200)
    date: datetime = Field(default_factory=_utcnow)
    is_recurring: bool = False
    recurrence: Recurrence | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _currency_code(v)

    @field_validator("comments", mode="before")
    @classmethod
    def strip_comments(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("date", mode="after")
    @classmethod
    def date_as_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def require_recurrence(self) -> "TransactionCreate":
        if self.is_recurring and self.recurrence is None:
            raise ValueError("recurrence is required for recurring transactions")
        return self


class TransactionUpdate(BaseModel):
    """Partial update; unset fields are left untouched."""
    type: TransactionType | None = None
    amount: Decimal | None = Field(default=None, gt=Decimal("0"))
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    category: Category | None = None
    tags: list[str] | None = None
    comments: str | None = Field(default=None, max_length=200)
    is_recurring: bool | None = None
    recurrence: Recurrence | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _currency_code(v)


class Transaction(TransactionCreate):
    """Stored transaction."""
    transaction_id: UUID = Field(default_factory=uuid4)
    user_id: str
    base_amount: Decimal
    base_currency: str
    end_date: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("amount", "base_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal | None:
        return _to_decimal(v)

    @field_validator("end_date", mode="after")
    @classmethod
    def end_date_as_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


# === Budgets ===

class BudgetCreate(BaseModel):
    title: str = Field(min_length=1)
    category: Category
    monthly_limit: Decimal = Field(gt=Decimal("0"))
    currency: str = Field(min_length=3, max_length=3)
    start_date: datetime
    end_date: datetime

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _currency_code(v)

    @field_validator("start_date", "end_date", mode="after")
    @classmethod
    def period_as_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def validate_period(self) -> "BudgetCreate":
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date.")
        return self


class BudgetUpdate(BaseModel):
    """Partial budget update. The period is re-validated against stored dates."""
    title: str | None = Field(default=None, min_length=1)
    category: Category | None = None
    monthly_limit: Decimal | None = Field(default=None, gt=Decimal("0"))
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _currency_code(v)

    @field_validator("start_date", "end_date", mode="after")
    @classmethod
    def period_as_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class Budget(BudgetCreate):
    budget_id: UUID = Field(default_factory=uuid4)
    user_id: str
    spent: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    base_amount: Decimal
    base_currency: str

    @field_validator("monthly_limit", "spent", "base_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal | None:
        return _to_decimal(v)

    @property
    def is_exceeded(self) -> bool:
        return self.spent > self.monthly_limit


# === Goals ===

class GoalCreate(BaseModel):
    title: str = Field(min_length=1)
    target_amount: Decimal = Field(gt=Decimal("0"))
    currency: str = Field(min_length=3, max_length=3)
    allocation_categories: list[Category] = Field(default_factory=list)
    allocation_percentage: Decimal = Field(
        default=Decimal("0"),
        ge=Decimal("0"),
        le=Decimal("100"),
        description="Share of matching income routed to this goal"
    )

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _currency_code(v)


class GoalUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    target_amount: Decimal | None = Field(default=None, gt=Decimal("0"))
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    allocation_categories: list[Category] | None = None
    allocation_percentage: Decimal | None = Field(
        default=None,
        ge=Decimal("0"),
        le=Decimal("100")
    )

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> Any:
        return _currency_code(v)


class Goal(GoalCreate):
    goal_id: UUID = Field(default_factory=uuid4)
    user_id: str
    saved_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    base_amount: Decimal
    base_currency: str
    is_completed: bool = False

    @field_validator("target_amount", "saved_amount", "base_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v: Any) -> Decimal | None:
        return _to_decimal(v)
