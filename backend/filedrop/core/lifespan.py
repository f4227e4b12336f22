import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..config import settings
from ..db.database import Database
from .dependencies import AppServices, build_services

logger = logging.getLogger(__name__)

for _logger_name in (
    "apscheduler.executors.default",
    "apscheduler.scheduler",
    "apscheduler.jobstores.default",
):
    logging.getLogger(_logger_name).setLevel(logging.WARNING)


async def run_cleanup(services: AppServices):
    """Run one cleanup pass; a failure is logged and the next interval retries."""
    try:
        logger.info("Running cleanup job for expired tokens...")
        report = await services.cleanup.run_once()
        logger.info(
            "Cleanup completed: %d tokens and %d files deleted",
            report.tokens_deleted, report.files_deleted,
        )
    except Exception as e:  # noqa: BLE001
        logger.error("Error during cleanup: %s", e, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle including startup and shutdown events."""
    logger.info("Starting application...")
    config = app.state.config
    database = Database(config.get("database_url"))
    scheduler = AsyncIOScheduler()

    try:
        await database.create_all()

        services = build_services(database, root_path=config.get("root_path"))
        app.state.services = services
        app.state.scheduler = scheduler

        if config.get("cleanup_on_startup", settings.CLEANUP_ON_STARTUP):
            await run_cleanup(services)

        if config.get("enable_scheduler", True):
            scheduler.add_job(
                run_cleanup,
                "interval",
                minutes=settings.CLEANUP_INTERVAL_MINUTES,
                args=[services],
                id="cleanup_expired_tokens",
                replace_existing=True,
            )
            scheduler.start()
            logger.info(
                "Scheduler started with cleanup job every %d minutes",
                settings.CLEANUP_INTERVAL_MINUTES,
            )

        yield
    except Exception as e:  # noqa: BLE001
        logger.error("Error during startup: %s", e, exc_info=True)
        raise
    finally:
        logger.info("Shutting down application...")
        if scheduler.running:
            scheduler.shutdown()
            logger.info("Scheduler stopped.")
        await database.dispose()
        logger.info("Application shutdown complete.")
