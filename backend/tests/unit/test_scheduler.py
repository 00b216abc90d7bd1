"""
Test startup migration scheduling
"""

import logging

import pytest

from storekv import scheduler
from storekv.container import StoreContainer


@pytest.fixture
def scheduler_log(caplog):
    """Capture the scheduler logger, which does not propagate to root"""
    logger = logging.getLogger("storekv.scheduler")
    logger.addHandler(caplog.handler)
    logger.setLevel(logging.INFO)
    yield caplog
    logger.removeHandler(caplog.handler)
    logger.setLevel(logging.NOTSET)


@pytest.mark.asyncio
async def test_startup_task_skips_file_backend(test_settings, scheduler_log):
    container = StoreContainer(settings=test_settings, resolver=lambda: None)
    await container.init()

    await scheduler.startup_migration_task(container)

    assert "flat-file backend" in scheduler_log.text


@pytest.mark.asyncio
async def test_startup_task_logs_failures(test_settings, sqlite_config, monkeypatch, scheduler_log):
    container = StoreContainer(settings=test_settings, resolver=lambda: sqlite_config)
    await container.init()

    async def broken(force=False):
        raise RuntimeError("disk full")

    monkeypatch.setattr(container, "run_migrations", broken)
    try:
        await scheduler.startup_migration_task(container)
    finally:
        await container.shutdown()

    assert "Startup migration failed: disk full" in scheduler_log.text


@pytest.mark.asyncio
async def test_startup_task_runs_migration(test_settings, sqlite_config):
    container = StoreContainer(settings=test_settings, resolver=lambda: sqlite_config)
    await container.init()
    try:
        await scheduler.startup_migration_task(container)

        status = await container.migration_status()
        assert status.status == "empty_stub"
    finally:
        await container.shutdown()


@pytest.mark.asyncio
async def test_start_scheduler_registers_startup_job(test_settings):
    settings = test_settings.model_copy(update={"MIGRATE_ON_STARTUP": True})
    container = StoreContainer(settings=settings, resolver=lambda: None)

    scheduler.start_scheduler(container)
    try:
        job = scheduler._scheduler.get_job("startup_migration")
        assert job is not None
        assert job.args == (container,)
    finally:
        scheduler.shutdown_scheduler()

    assert scheduler._scheduler is None


@pytest.mark.asyncio
async def test_start_scheduler_without_startup_migration(test_settings):
    container = StoreContainer(settings=test_settings, resolver=lambda: None)

    scheduler.start_scheduler(container)
    try:
        assert scheduler._scheduler.get_job("startup_migration") is None
    finally:
        scheduler.shutdown_scheduler()
