"""
Budget Service

Budgets store their monthly limit in the budget currency and in the base
currency. Spending is always accumulated in the budget currency.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from fintrack.conversion.service import CurrencyConversionService
from fintrack.ledger.models import Budget, BudgetCreate, BudgetUpdate, Transaction, TransactionType
from fintrack.ledger.money import convert_money
from fintrack.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpendResult:
    budget: Budget
    added: Decimal

    @property
    def exceeded(self) -> bool:
        return self.budget.is_exceeded


class BudgetService:
    def __init__(self, repository: LedgerRepository, converter: CurrencyConversionService):
        self.repository = repository
        self.converter = converter

    async def _require(self, budget_id: UUID) -> Budget:
        budget = await self.repository.get_budget(budget_id)
        if budget is None:
            raise LookupError(f"Budget not found: {budget_id}")
        return budget

    async def add_budget(self, user_id: str, payload: BudgetCreate) -> Budget:
        """
        Create a budget with its limit normalized into the base currency.

        Raises:
            ConversionError: Limit could not be converted; nothing is saved.
        """
        base_currency = self.converter.base_currency
        base_amount = await convert_money(
            self.converter, payload.monthly_limit, payload.currency, base_currency
        )
        budget = Budget(
            **payload.model_dump(),
            user_id=user_id,
            base_amount=base_amount,
            base_currency=base_currency,
        )
        await self.repository.save_budget(budget)
        logger.info(f"Budget created: {budget.budget_id} ({budget.category.value})")
        return budget

    async def get_budget(self, budget_id: UUID) -> Budget:
        return await self._require(budget_id)

    async def update_budget(self, budget_id: UUID, changes: BudgetUpdate) -> Budget:
        """
        Apply a partial update.

        A new limit or currency re-normalizes ``base_amount``; the limit is
        read in the (possibly new) budget currency.

        Raises:
            LookupError: Unknown budget.
            ValueError: Resulting period ends before it starts.
            ConversionError: Limit could not be converted; nothing is saved.
        """
        budget = await self._require(budget_id)
        update = changes.model_dump(exclude_unset=True, exclude_none=True)

        start_date = update.get("start_date", budget.start_date)
        end_date = update.get("end_date", budget.end_date)
        if start_date >= end_date:
            raise ValueError("End date must be after start date.")

        if "monthly_limit" in update or "currency" in update:
            limit = update.get("monthly_limit", budget.monthly_limit)
            currency = update.get("currency", budget.currency)
            update["base_amount"] = await convert_money(
                self.converter, limit, currency, budget.base_currency
            )

        budget = budget.model_copy(update=update)
        await self.repository.save_budget(budget)
        logger.info(f"Budget updated: {budget_id}")
        return budget

    async def record_spend(
        self,
        budget_id: UUID,
        amount: Decimal,
        currency: str,
        now: datetime | None = None
    ) -> SpendResult:
        """
        Add a spent amount, converting it into the budget currency first.

        Raises:
            LookupError: Unknown budget.
            ValueError: Budget period has ended.
            ConversionError: Amount could not be converted.
        """
        now = now or datetime.now(timezone.utc)
        budget = await self._require(budget_id)
        if now > budget.end_date:
            raise ValueError("Cannot add spent amount. Budget period has ended.")

        added = await convert_money(self.converter, amount, currency.upper(), budget.currency)
        budget = budget.model_copy(update={"spent": budget.spent + added})
        await self.repository.save_budget(budget)

        if budget.is_exceeded:
            logger.warning(f"⚠️ Budget for {budget.category.value} has been exceeded ({budget.budget_id})")
        return SpendResult(budget=budget, added=added)

    async def apply_transaction(
        self,
        transaction: Transaction,
        now: datetime | None = None
    ) -> Budget | None:
        """
        Count an expense against the user's budget for its category.

        Returns the updated budget, or None when no active budget matches.
        """
        if transaction.type is not TransactionType.EXPENSE:
            return None

        budget = await self.repository.find_budget(transaction.user_id, transaction.category)
        if budget is None:
            return None

        now = now or datetime.now(timezone.utc)
        if now > budget.end_date:
            logger.info(f"Budget period for {budget.category.value} has ended. No update performed.")
            return None

        result = await self.record_spend(
            budget.budget_id, transaction.amount, transaction.currency, now=now
        )
        logger.info(
            f"Budget updated for category: {budget.category.value}. "
            f"New spent amount: {result.budget.spent}"
        )
        return result.budget

    async def remaining_percentage(self, budget_id: UUID) -> str:
        budget = await self._require(budget_id)
        remaining = (budget.monthly_limit - budget.spent) / budget.monthly_limit * 100
        return f"{remaining.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"
