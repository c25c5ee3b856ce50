"""
Ledger Repository

Storage seam for transactions, budgets and goals. Durable persistence lives
outside this package; ``InMemoryLedgerRepository`` backs the API process and
the tests.
"""

from typing import Protocol
from uuid import UUID

from fintrack.ledger.models import Budget, Goal, Transaction


class LedgerRepository(Protocol):
    async def save_transaction(self, transaction: Transaction) -> Transaction: ...

    async def get_transaction(self, transaction_id: UUID) -> Transaction | None: ...

    async def list_transactions(self, user_id: str | None = None) -> list[Transaction]: ...

    async def delete_transaction(self, transaction_id: UUID) -> bool: ...

    async def save_budget(self, budget: Budget) -> Budget: ...

    async def get_budget(self, budget_id: UUID) -> Budget | None: ...

    async def find_budget(self, user_id: str, category: str) -> Budget | None: ...

    async def save_goal(self, goal: Goal) -> Goal: ...

    async def get_goal(self, goal_id: UUID) -> Goal | None: ...

    async def list_goals(self, user_id: str) -> list[Goal]: ...


class InMemoryLedgerRepository:
    """Dict-backed repository. Saves are upserts keyed by id."""

    def __init__(self):
        self.transactions: dict[UUID, Transaction] = {}
        self.budgets: dict[UUID, Budget] = {}
        self.goals: dict[UUID, Goal] = {}

    # Transactions --------------------------------------------
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        self.transactions[transaction.transaction_id] = transaction
        return transaction

    async def get_transaction(self, transaction_id: UUID) -> Transaction | None:
        return self.transactions.get(transaction_id)

    async def list_transactions(self, user_id: str | None = None) -> list[Transaction]:
        items = [
            t for t in self.transactions.values()
            if user_id is None or t.user_id == user_id
        ]
        return sorted(items, key=lambda t: t.date, reverse=True)

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return self.transactions.pop(transaction_id, None) is not None

    # Budgets -------------------------------------------------
    async def save_budget(self, budget: Budget) -> Budget:
        self.budgets[budget.budget_id] = budget
        return budget

    async def get_budget(self, budget_id: UUID) -> Budget | None:
        return self.budgets.get(budget_id)

    async def find_budget(self, user_id: str, category: str) -> Budget | None:
        for budget in self.budgets.values():
            if budget.user_id == user_id and budget.category == category:
                return budget
        return None

    # Goals ---------------------------------------------------
    async def save_goal(self, goal: Goal) -> Goal:
        self.goals[goal.goal_id] = goal
        return goal

    async def get_goal(self, goal_id: UUID) -> Goal | None:
        return self.goals.get(goal_id)

    async def list_goals(self, user_id: str) -> list[Goal]:
        return [g for g in self.goals.values() if g.user_id == user_id]
