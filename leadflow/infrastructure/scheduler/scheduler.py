"""
PERIODIC JOB SCHEDULER
======================

Builds the APScheduler instances that drive background jobs.

CONFIGURED JOBS:
- Acceptance monitor: every `acceptance_poll_interval_minutes` (default 30)

TECHNOLOGY: APScheduler (AsyncIOScheduler)
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from leadflow.config import get_settings

logger = logging.getLogger(__name__)

ACCEPTANCE_JOB_ID = "acceptance_monitor"


def create_scheduler() -> AsyncIOScheduler:
    """Creates a scheduler with the shared job defaults (not started)."""
    settings = get_settings()

    return AsyncIOScheduler(
        timezone=settings.scheduler_timezone,
        job_defaults={
            "coalesce": True,  # Collapse missed runs into one
            "max_instances": 1,  # Never overlap two ticks
            "misfire_grace_time": 60 * 5,
        }
    )


def register_acceptance_job(
    sched: AsyncIOScheduler,
    job: Callable[[], Awaitable[Any]],
    interval_minutes: float,
) -> None:
    """
    Registers the acceptance monitor tick.

    RUNS: right after start, then every `interval_minutes`
    """
    sched.add_job(
        job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=ACCEPTANCE_JOB_ID,
        next_run_time=datetime.now(sched.timezone),
        name="Lead acceptance monitor",
        replace_existing=True,
    )

    logger.info(f"📅 Job registered: Lead acceptance monitor (every {interval_minutes:g} min)")


def describe_jobs(sched: AsyncIOScheduler) -> List[Dict[str, Any]]:
    """Job list for status endpoints."""
    jobs_info = []
    for job in sched.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(next_run) if next_run else None,
        })
    return jobs_info
