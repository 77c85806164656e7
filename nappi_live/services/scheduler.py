"""
APScheduler setup: one recurring job.

Jobs:
  - Sleep status refresh: every SLEEP_STATUS_REFRESH_SECONDS (skipped when 0)
"""

import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from .sleep_state import SleepStateCoordinator
from ..core.settings import settings

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None

SLEEP_REFRESH_JOB_ID = "sleep_status_refresh"


# Used by: main.py (NappiLive.start)
async def start_scheduler(
    coordinator: SleepStateCoordinator,
    interval_seconds: int = settings.SLEEP_STATUS_REFRESH_SECONDS,
):
    """Initialize and start APScheduler."""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    if interval_seconds <= 0:
        logger.info("Sleep status refresh disabled (SLEEP_STATUS_REFRESH_SECONDS=0)")
        return

    logger.info("Initializing scheduler...")

    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        coordinator.refresh,
        trigger=IntervalTrigger(seconds=interval_seconds),
        id=SLEEP_REFRESH_JOB_ID,
        name="Refresh sleep and cooldown status for the current baby",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started: sleep status refresh every {interval_seconds} seconds")


# Used by: main.py (NappiLive.stop)
async def stop_scheduler():
    global scheduler

    if scheduler is None:
        return

    logger.info("Shutting down scheduler...")
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Scheduler stopped")


# Used by: main.py (NappiLive.status)
def get_scheduler_status() -> dict:
    if scheduler is None:
        return {
            "running": False,
            "jobs": []
        }

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": scheduler.running,
        "jobs": jobs
    }
