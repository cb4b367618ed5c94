"""Scheduler for running the Whoop fetch cycle in-process."""

import asyncio

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from whoopdash.config.settings import settings
from whoopdash.sync import EXIT_OK, run_sync

logger = structlog.get_logger()


class DashboardScheduler:
    """Runs the fetch cycle on an interval.

    The usual deployment triggers ``scripts/fetch_whoop_data.py`` from an
    external scheduler instead; this is for long-running hosts.
    """

    def __init__(self, interval_minutes: int | None = None) -> None:
        self.interval_minutes = interval_minutes or settings.dashboard.sync_interval_minutes
        self.scheduler = AsyncIOScheduler()
        self.last_exit_code: int | None = None
        self._setup_jobs()

    def _setup_jobs(self) -> None:
        """Configure the data sync job."""
        self.scheduler.add_job(
            self._data_sync,
            IntervalTrigger(minutes=self.interval_minutes),
            id="whoop_sync",
            name="Whoop Data Sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled jobs configured", interval_minutes=self.interval_minutes)

    async def _data_sync(self) -> None:
        """Run one fetch cycle; a failed run waits for the next interval."""
        logger.info("Running data sync")
        self.last_exit_code = await run_sync()
        if self.last_exit_code == EXIT_OK:
            logger.info("Data sync complete")
        else:
            logger.warning("Data sync failed", exit_code=self.last_exit_code)

    def start(self) -> None:
        """Start the scheduler."""
        self.scheduler.start()
        logger.info("Dashboard scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        self.scheduler.shutdown()
        logger.info("Dashboard scheduler stopped")


async def run_scheduler(interval_minutes: int | None = None, run_now: bool = True) -> None:
    """Run the scheduler until cancelled (Ctrl+C)."""
    scheduler = DashboardScheduler(interval_minutes)
    scheduler.start()
    if run_now:
        await scheduler._data_sync()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
