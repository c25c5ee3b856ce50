"""
FINTRACK Main Application Entry Point

Lifespan owns the shared resources: the rate cache connection, the outbound
HTTP client and the scheduler running the recurring-transaction job.
"""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fintrack import __version__
from fintrack.api import conversion_error_handler, router
from fintrack.config import Settings, get_settings
from fintrack.container import Services, build_services
from fintrack.conversion import ConversionError, RateCache, RateCacheError, build_rate_cache
from fintrack.ledger import process_recurring_transactions, remind_upcoming_transactions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Apply LOG_LEVEL to the root logger."""
    logging.getLogger().setLevel(settings.log_level)


async def scheduled_job(services: Services) -> None:
    """Scheduled recurring-transaction job wrapper."""
    logger.info("⏰ Scheduled job triggered")
    created = await process_recurring_transactions(services.transactions)
    await remind_upcoming_transactions(services.transactions)
    logger.info(f"⏰ Scheduled job completed: {created} transaction(s) created")


def create_scheduler(settings: Settings, services: Services) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
    scheduler.add_job(
        scheduled_job,
        CronTrigger(
            hour=settings.scheduler_cron_hour,
            minute=settings.scheduler_cron_minute
        ),
        args=[services],
        id="recurring_transactions",
        name="Recurring Transactions",
        replace_existing=True
    )
    return scheduler


def create_app(
    settings: Settings | None = None,
    cache: RateCache | None = None,
    services: Services | None = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    """
    Create FastAPI application.

    Tests pass a prebuilt ``services`` (or ``cache``) to avoid Redis and the
    real provider.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Starting FINTRACK v.{__version__}")

        app_services = services or build_services(settings, cache or build_rate_cache(settings))
        try:
            await app_services.cache.connect()
        except RateCacheError as e:
            # Conversions still work without the cache, only slower
            logger.warning(f"⚠️ Rate cache not available: {e}")
        app.state.services = app_services

        scheduler = None
        if enable_scheduler:
            scheduler = create_scheduler(settings, app_services)
            scheduler.start()
            logger.info(
                f"⏰ Scheduler started: recurring job at "
                f"{settings.scheduler_cron_hour:02d}:{settings.scheduler_cron_minute:02d} "
                f"{settings.scheduler_timezone}"
            )

        yield

        logger.info("🛑 Shutting down FINTRACK")
        if scheduler:
            scheduler.shutdown()
            logger.info("⏰ Scheduler stopped")
        await app_services.aclose()
        logger.info("✅ Shutdown complete")

    app = FastAPI(
        title="FINTRACK",
        description="Personal finance tracking with base-currency normalization",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/api/v1/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ConversionError, conversion_error_handler)
    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "FINTRACK",
            "version": __version__,
            "docs": "/docs",
            "api": {
                "convert": "/api/v1/convert",
                "transactions": "/api/v1/transactions",
                "budgets": "/api/v1/budgets",
                "goals": "/api/v1/goals",
                "health": "/api/v1/health",
            }
        }

    return app


# Create application instance
app = create_app()


def main():
    """Main entry point for running the server."""
    settings = get_settings()

    logger.info(f"Starting FINTRACK server on {settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "fintrack.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
