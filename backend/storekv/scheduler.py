"""
Scheduled Task Module

Uses APScheduler to run the one-shot image extraction migration shortly
after startup, outside the request path.
"""

import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from storekv.common.time import utc_now
from storekv.container import StoreContainer

logger = logging.getLogger(__name__)

# Global Scheduler Instance
_scheduler: Optional[AsyncIOScheduler] = None


async def startup_migration_task(container: StoreContainer):
    """
    Startup Migration Task

    Best effort: failures are logged and the server keeps running.
    """
    if container.pools is None:
        logger.info("Startup migration skipped: flat-file backend in use")
        return

    try:
        appearance, entities = await container.run_migrations()
        moved_entities = sum(result.moved or 0 for result in entities)
        logger.info(
            f"Startup migration completed: appearance moved {len(appearance.moved)} "
            f"({appearance.reason.value if appearance.reason else 'ok'}), "
            f"entities moved {moved_entities}"
        )
    except Exception as e:
        logger.warning(f"Startup migration failed: {str(e)}", exc_info=True)


def start_scheduler(container: StoreContainer):
    """
    Start Scheduled Task Scheduler

    Schedules the startup migration when enabled in settings.
    """
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already started")
        return

    settings = container.settings
    _scheduler = AsyncIOScheduler()

    if settings.MIGRATE_ON_STARTUP:
        run_date = utc_now() + timedelta(seconds=settings.MIGRATE_STARTUP_DELAY_SECONDS)
        _scheduler.add_job(
            startup_migration_task,
            trigger=DateTrigger(run_date=run_date),
            args=[container],
            id="startup_migration",
            name="Extract embedded images",
            replace_existing=True,
        )

    _scheduler.start()
    logger.info(f"Scheduler started: startup migration {'scheduled' if settings.MIGRATE_ON_STARTUP else 'disabled'}")


def shutdown_scheduler():
    """
    Shutdown Scheduled Task Scheduler
    """
    global _scheduler

    if _scheduler is None:
        return

    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("Scheduler shutdown completed")
