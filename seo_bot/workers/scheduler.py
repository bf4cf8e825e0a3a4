"""
APScheduler wiring for the recurring SEO audit.

Schedule
--------
  seo_audit: SCHEDULE_CRON (default ``0 */2 * * *``, every 2 hours),
             plus one immediate run at start-up when RUN_ON_STARTUP is set.

Overlap
-------
At most one run executes at a time. APScheduler enforces this per job with
``max_instances=1``; ``SingleFlightJob`` additionally skips any call that
arrives while a run holds its lock, whatever the caller.

Lifecycle
---------
``build_scheduler()`` returns a configured but *not yet started*
``AsyncIOScheduler``. Start it inside the running event loop and shut it
down on exit.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from seo_bot.core.config import Settings
from seo_bot.engines.base import AuditRun
from seo_bot.engines.runner.engine import AuditRunner

logger = structlog.get_logger(__name__)

JOB_ID = "seo_audit"


class SingleFlightJob:
    """Runs the audit unless a previous run is still in progress."""

    def __init__(self, runner: AuditRunner):
        self.runner = runner
        self._lock = asyncio.Lock()
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run(self) -> AuditRun | None:
        if self._lock.locked():
            self.skipped += 1
            logger.warning("Previous audit still running, skipping tick", skipped=self.skipped)
            return None

        async with self._lock:
            return await self.runner.run()


def _on_job_event(event: JobEvent) -> None:
    if event.code == EVENT_JOB_MAX_INSTANCES:
        logger.warning("Audit tick skipped, job already running", job_id=event.job_id)
        return
    logger.error(
        "Audit run failed",
        job_id=event.job_id,
        error=str(event.exception),
        exc_info=event.exception,
    )


def build_scheduler(job: SingleFlightJob, settings: Settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.SCHEDULER_TIMEZONE)

    options: dict[str, Any] = {}
    if settings.RUN_ON_STARTUP:
        options["next_run_time"] = datetime.now(timezone.utc)

    scheduler.add_job(
        job.run,
        trigger=CronTrigger.from_crontab(settings.SCHEDULE_CRON, timezone=settings.SCHEDULER_TIMEZONE),
        id=JOB_ID,
        name="SEO performance audit",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=600,
        **options,
    )
    scheduler.add_listener(_on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)

    return scheduler
