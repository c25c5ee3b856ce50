"""
Goal Service

Savings goals receive a share of matching income automatically. Allocation
is best-effort: a goal whose conversion fails is skipped, the rest still get
their share.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from fintrack.conversion.errors import ConversionError
from fintrack.conversion.service import CurrencyConversionService
from fintrack.ledger.models import Goal, GoalCreate, GoalUpdate, Transaction, TransactionType
from fintrack.ledger.money import convert_money
from fintrack.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


class GoalService:
    def __init__(self, repository: LedgerRepository, converter: CurrencyConversionService):
        self.repository = repository
        self.converter = converter

    async def add_goal(self, user_id: str, payload: GoalCreate) -> Goal:
        base_currency = self.converter.base_currency
        base_amount = await convert_money(
            self.converter, payload.target_amount, payload.currency, base_currency
        )
        goal = Goal(
            **payload.model_dump(),
            user_id=user_id,
            base_amount=base_amount,
            base_currency=base_currency,
        )
        await self.repository.save_goal(goal)
        logger.info(f"Goal created: {goal.goal_id} ({goal.title})")
        return goal

    async def get_goal(self, goal_id: UUID) -> Goal:
        goal = await self.repository.get_goal(goal_id)
        if goal is None:
            raise LookupError(f"Goal not found: {goal_id}")
        return goal

    async def auto_allocate(self, transaction: Transaction) -> list[Goal]:
        """
        Route ``allocation_percentage`` of an income into each matching goal.

        Returns the goals that were updated.
        """
        if transaction.type is not TransactionType.INCOME:
            return []

        goals = await self.repository.list_goals(transaction.user_id)
        if not goals:
            logger.info(f"No goals found for user {transaction.user_id}.")
            return []

        updated: list[Goal] = []
        for goal in goals:
            if (
                goal.is_completed
                or goal.allocation_percentage <= 0
                or transaction.category not in goal.allocation_categories
            ):
                continue

            share = transaction.amount * goal.allocation_percentage / Decimal("100")
            try:
                allocated = await convert_money(
                    self.converter, share, transaction.currency, goal.currency
                )
            except ConversionError as e:
                logger.error(f"Skipping allocation to goal {goal.goal_id}: {e}")
                continue

            goal = await self._credit(goal, allocated)
            updated.append(goal)
            logger.info(f"Allocated {allocated} {goal.currency} to goal {goal.goal_id}")

        return updated

    async def _credit(self, goal: Goal, amount: Decimal) -> Goal:
        saved = goal.saved_amount + amount
        goal = goal.model_copy(update={
            "saved_amount": saved,
            "is_completed": saved >= goal.target_amount,
        })
        await self.repository.save_goal(goal)
        if goal.is_completed:
            logger.info(f"🎯 Goal completed: {goal.title}")
        return goal

    async def update_goal(self, goal_id: UUID, changes: GoalUpdate) -> Goal:
        """
        Apply a partial update.

        A new target or currency re-normalizes ``base_amount``. Completion is
        re-evaluated against the new target.

        Raises:
            LookupError: Unknown goal.
            ConversionError: Target could not be converted; nothing is saved.
        """
        goal = await self.get_goal(goal_id)
        update = changes.model_dump(exclude_unset=True, exclude_none=True)

        if "target_amount" in update or "currency" in update:
            target = update.get("target_amount", goal.target_amount)
            currency = update.get("currency", goal.currency)
            update["base_amount"] = await convert_money(
                self.converter, target, currency, goal.base_currency
            )
            update["is_completed"] = goal.saved_amount >= target

        goal = goal.model_copy(update=update)
        await self.repository.save_goal(goal)
        logger.info(f"Goal updated: {goal_id}")
        return goal

    async def add_savings(self, goal_id: UUID, amount: Decimal, currency: str) -> Goal:
        """
        Add a manual contribution, converted into the goal currency.

        Raises:
            LookupError: Unknown goal.
            ValueError: Non-positive amount.
            ConversionError: Amount could not be converted.
        """
        if amount <= 0:
            raise ValueError("Savings amount must be positive.")
        goal = await self.get_goal(goal_id)
        added = await convert_money(self.converter, amount, currency.upper(), goal.currency)
        goal = await self._credit(goal, added)
        logger.info(f"Savings added: {added} {goal.currency} to goal {goal_id}")
        return goal

    async def progress(self, goal_id: UUID) -> str:
        """Saved share of the target in percent, two decimals."""
        goal = await self.get_goal(goal_id)
        percent = goal.saved_amount / goal.target_amount * 100
        return f"{percent.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"
