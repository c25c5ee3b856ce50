"""
FINTRACK Ledger Module

Transaction, budget and goal logic. Each consumer normalizes money through
the conversion service before saving.
"""

from fintrack.ledger.budgets import BudgetService
from fintrack.ledger.goals import GoalService
from fintrack.ledger.jobs import process_recurring_transactions, remind_upcoming_transactions
from fintrack.ledger.repository import InMemoryLedgerRepository, LedgerRepository
from fintrack.ledger.transactions import TransactionService

__all__ = [
    "BudgetService",
    "GoalService",
    "InMemoryLedgerRepository",
    "LedgerRepository",
    "TransactionService",
    "process_recurring_transactions",
    "remind_upcoming_transactions",
]
