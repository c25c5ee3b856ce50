"""
Transaction Service

Every transaction is normalized into the base currency before it is saved.
If that conversion fails the transaction is not written. Follow-up effects
(budget spend, goal allocation) run after the save and are best-effort.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fintrack.conversion.errors import ConversionError
from fintrack.conversion.service import CurrencyConversionService
from fintrack.ledger.budgets import BudgetService
from fintrack.ledger.goals import GoalService
from fintrack.ledger.models import (
    Category,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    as_utc,
)
from fintrack.ledger.money import convert_money
from fintrack.ledger.recurrence import calculate_end_date
from fintrack.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionPage:
    total: int
    page: int
    limit: int
    transactions: list[Transaction]


class TransactionService:
    def __init__(
        self,
        repository: LedgerRepository,
        converter: CurrencyConversionService,
        budgets: BudgetService,
        goals: GoalService,
    ):
        self.repository = repository
        self.converter = converter
        self.budgets = budgets
        self.goals = goals

    async def _require(self, transaction_id: UUID) -> Transaction:
        transaction = await self.repository.get_transaction(transaction_id)
        if transaction is None:
            raise LookupError(f"Transaction not found: {transaction_id}")
        return transaction

    async def add_transaction(self, user_id: str, payload: TransactionCreate) -> Transaction:
        """
        Record a transaction.

        Raises:
            ConversionError: Amount could not be normalized; nothing is saved.
        """
        base_currency = self.converter.base_currency
        base_amount = await convert_money(
            self.converter, payload.amount, payload.currency, base_currency
        )

        end_date = None
        if payload.is_recurring and payload.recurrence:
            end_date = calculate_end_date(payload.recurrence, payload.date)

        transaction = Transaction(
            **payload.model_dump(),
            user_id=user_id,
            base_amount=base_amount,
            base_currency=base_currency,
            end_date=end_date,
        )
        await self.repository.save_transaction(transaction)
        logger.info(
            f"New transaction added. User ID: {user_id}, "
            f"Transaction ID: {transaction.transaction_id}"
        )

        await self._apply_side_effects(transaction)
        return transaction

    async def _apply_side_effects(self, transaction: Transaction) -> None:
        if transaction.type is TransactionType.INCOME:
            await self.goals.auto_allocate(transaction)
            return
        try:
            await self.budgets.apply_transaction(transaction)
        except ConversionError as e:
            logger.error(
                f"Budget not updated for transaction {transaction.transaction_id}: {e}"
            )

    async def get_transaction(
        self,
        transaction_id: UUID,
        currency: str | None = None
    ) -> Transaction:
        """
        Fetch a transaction, optionally expressed in another currency.

        The displayed amount is converted from ``base_amount``.
        """
        transaction = await self._require(transaction_id)
        if not currency:
            return transaction

        currency = currency.upper()
        if currency == transaction.currency:
            return transaction

        amount = await convert_money(
            self.converter, transaction.base_amount, transaction.base_currency, currency
        )
        return transaction.model_copy(update={"amount": amount, "currency": currency})

    async def list_transactions(
        self,
        user_id: str,
        type: TransactionType | None = None,
        category: Category | None = None,
        tag: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> TransactionPage:
        items = await self.repository.list_transactions(user_id)
        if type is not None:
            items = [t for t in items if t.type is type]
        if category is not None:
            items = [t for t in items if t.category is category]
        if tag is not None:
            items = [t for t in items if tag in t.tags]
        if start_date is not None:
            start_date = as_utc(start_date)
            items = [t for t in items if t.date >= start_date]
        if end_date is not None:
            end_date = as_utc(end_date)
            items = [t for t in items if t.date <= end_date]

        start = (page - 1) * limit
        return TransactionPage(
            total=len(items),
            page=page,
            limit=limit,
            transactions=items[start:start + limit],
        )

    async def update_transaction(
        self,
        transaction_id: UUID,
        changes: TransactionUpdate
    ) -> Transaction:
        """
        Apply a partial update.

        Raises:
            LookupError: Unknown transaction.
            ValueError: Currency changed without an amount.
            ConversionError: New amount could not be normalized; nothing is saved.
        """
        transaction = await self._require(transaction_id)
        update = changes.model_dump(exclude_unset=True)

        if update.get("is_recurring") is False:
            update["recurrence"] = None
            update["end_date"] = None

        currency_changed = (
            "currency" in update and update["currency"] != transaction.currency
        )
        if currency_changed and "amount" not in update:
            raise ValueError("Amount is required for currency conversion")

        if "amount" in update or currency_changed:
            amount = update.get("amount", transaction.amount)
            currency = update.get("currency", transaction.currency)
            update["base_amount"] = await convert_money(
                self.converter, amount, currency, transaction.base_currency
            )
            logger.info(
                f"Amount converted: {amount} {currency} -> "
                f"{update['base_amount']} {transaction.base_currency}"
            )

        updated = transaction.model_copy(update=update)
        if updated.is_recurring and updated.recurrence and updated.end_date is None:
            updated = updated.model_copy(
                update={"end_date": calculate_end_date(updated.recurrence, updated.date)}
            )
        await self.repository.save_transaction(updated)
        logger.info(f"Transaction updated successfully: ID {transaction_id}")
        return updated

    async def delete_transaction(self, transaction_id: UUID) -> None:
        if not await self.repository.delete_transaction(transaction_id):
            raise LookupError(f"Transaction not found: {transaction_id}")
        logger.info(f"Transaction deleted: {transaction_id}")
