"""
Recurring Transaction Job

Runs on the app scheduler. Every recurring transaction whose period has
ended spawns its next occurrence; the spawned transaction carries the
recurrence forward and the old one stops recurring. Conversion failures skip
that transaction only, so it is picked up again on the next run and logged as
a missed payment meanwhile.

Transactions falling due within the next day get a reminder log line.
Reminders are log-only; there is no notification store.
"""

import logging
from datetime import datetime, timedelta, timezone

from fintrack.conversion.errors import ConversionError
from fintrack.ledger.models import Transaction, TransactionCreate
from fintrack.ledger.transactions import TransactionService

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(days=1)


def _describe(transaction: Transaction) -> str:
    return (
        f"{transaction.category.value} transaction of "
        f"{transaction.amount} {transaction.currency}"
    )


async def remind_upcoming_transactions(
    service: TransactionService,
    now: datetime | None = None
) -> list[Transaction]:
    """
    Log a reminder for each recurring transaction due within a day.

    Returns:
        The transactions reminded about.
    """
    now = now or datetime.now(timezone.utc)
    upcoming = [
        t for t in await service.repository.list_transactions()
        if t.is_recurring and t.end_date is not None
        and now < t.end_date <= now + REMINDER_WINDOW
    ]
    for transaction in upcoming:
        logger.info(
            f"🔔 Reminder for user {transaction.user_id}: "
            f"Your {_describe(transaction)} is due soon."
        )
    return upcoming


async def process_recurring_transactions(
    service: TransactionService,
    now: datetime | None = None
) -> int:
    """
    Create the next occurrence of every due recurring transaction.

    Returns:
        Number of transactions created.
    """
    now = now or datetime.now(timezone.utc)
    due = [
        t for t in await service.repository.list_transactions()
        if t.is_recurring and t.end_date is not None and t.end_date <= now
    ]
    logger.info(f"Recurring job: {len(due)} transaction(s) due")

    created = 0
    for transaction in due:
        payload = TransactionCreate(
            type=transaction.type,
            amount=transaction.amount,
            currency=transaction.currency,
            category=transaction.category,
            tags=transaction.tags,
            comments=transaction.comments,
            date=transaction.end_date,
            is_recurring=True,
            recurrence=transaction.recurrence,
        )
        try:
            await service.add_transaction(transaction.user_id, payload)
        except ConversionError as e:
            logger.error(
                f"❌ Skipping recurring transaction {transaction.transaction_id}: {e}"
            )
            logger.warning(
                f"Missed Payment Alert for user {transaction.user_id}: "
                f"You missed your {_describe(transaction)}."
            )
            continue

        await service.repository.save_transaction(
            transaction.model_copy(update={"is_recurring": False})
        )
        created += 1

    logger.info(f"✅ Recurring job complete: {created}/{len(due)} created")
    return created
