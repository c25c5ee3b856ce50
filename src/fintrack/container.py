"""
Service wiring

Builds the conversion service and the ledger consumers around one cache and
one HTTP client. The app lifespan owns the resulting container.
"""

from dataclasses import dataclass

from fintrack.config import Settings
from fintrack.conversion import CurrencyConversionService, RateCache, ResilientHttpClient
from fintrack.ledger import (
    BudgetService,
    GoalService,
    InMemoryLedgerRepository,
    LedgerRepository,
    TransactionService,
)


@dataclass
class Services:
    settings: Settings
    cache: RateCache
    http_client: ResilientHttpClient
    converter: CurrencyConversionService
    repository: LedgerRepository
    transactions: TransactionService
    budgets: BudgetService
    goals: GoalService

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.cache.close()


def build_services(
    settings: Settings,
    cache: RateCache,
    http_client: ResilientHttpClient | None = None,
    repository: LedgerRepository | None = None,
) -> Services:
    http_client = http_client or ResilientHttpClient.from_settings(settings)
    repository = repository or InMemoryLedgerRepository()
    converter = CurrencyConversionService(cache, http_client, settings)
    budgets = BudgetService(repository, converter)
    goals = GoalService(repository, converter)
    return Services(
        settings=settings,
        cache=cache,
        http_client=http_client,
        converter=converter,
        repository=repository,
        transactions=TransactionService(repository, converter, budgets, goals),
        budgets=budgets,
        goals=goals,
    )
