"""Tests for the recurring audit job wiring."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MAX_INSTANCES,
    JobExecutionEvent,
    JobSubmissionEvent,
)
from apscheduler.triggers.cron import CronTrigger

from seo_bot.engines.base import AuditRun
from seo_bot.workers.scheduler import JOB_ID, SingleFlightJob, _on_job_event, build_scheduler


def runner_returning(run=None):
    runner = MagicMock()
    runner.run = AsyncMock(return_value=run or AuditRun(sitemap_url="https://example.com/page-sitemap.xml"))
    return runner


class TestSingleFlightJob:

    @pytest.mark.asyncio
    async def test_runs_the_audit(self):
        runner = runner_returning()
        job = SingleFlightJob(runner)

        result = await job.run()

        assert result is runner.run.return_value
        runner.run.assert_awaited_once()
        assert not job.running

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_run():
            started.set()
            await release.wait()
            return "done"

        runner = MagicMock()
        runner.run = AsyncMock(side_effect=slow_run)
        job = SingleFlightJob(runner)

        first = asyncio.create_task(job.run())
        await started.wait()
        assert job.running

        assert await job.run() is None
        assert job.skipped == 1

        release.set()
        assert await first == "done"
        assert runner.run.await_count == 1

        # The guard is released once the run finishes
        assert await job.run() == "done"
        assert runner.run.await_count == 2

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self):
        runner = MagicMock()
        runner.run = AsyncMock(side_effect=[OSError("disk full"), "ok"])
        job = SingleFlightJob(runner)

        with pytest.raises(OSError):
            await job.run()

        assert not job.running
        assert await job.run() == "ok"


class TestBuildScheduler:

    def test_registers_cron_job(self, settings):
        job = SingleFlightJob(runner_returning())
        scheduler = build_scheduler(job, settings)

        scheduled = scheduler.get_job(JOB_ID)
        assert scheduled is not None
        assert isinstance(scheduled.trigger, CronTrigger)
        assert scheduled.func == job.run
        assert scheduled.max_instances == 1
        assert scheduled.coalesce is True

    def test_cron_fires_every_two_hours(self, settings):
        scheduler = build_scheduler(SingleFlightJob(runner_returning()), settings)
        trigger = scheduler.get_job(JOB_ID).trigger

        now = datetime(2026, 10, 18, 9, 15, tzinfo=timezone.utc)
        first = trigger.get_next_fire_time(None, now)
        second = trigger.get_next_fire_time(first, first + timedelta(seconds=1))

        assert first == datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)
        assert second - first == timedelta(hours=2)

    def test_first_run_is_immediate(self, settings):
        before = datetime.now(timezone.utc)
        scheduler = build_scheduler(SingleFlightJob(runner_returning()), settings)

        next_run = scheduler.get_job(JOB_ID).next_run_time
        assert next_run is not None
        assert next_run - before < timedelta(seconds=5)

    def test_startup_run_can_be_disabled(self, settings):
        settings = settings.model_copy(update={"RUN_ON_STARTUP": False})
        scheduler = build_scheduler(SingleFlightJob(runner_returning()), settings)

        assert getattr(scheduler.get_job(JOB_ID), "next_run_time", None) is None


class TestJobEventListener:

    def test_job_error_is_logged_with_exception(self):
        error = OSError("disk full")
        event = JobExecutionEvent(
            EVENT_JOB_ERROR, JOB_ID, "default", datetime.now(timezone.utc), exception=error
        )

        with patch("seo_bot.workers.scheduler.logger") as logger:
            _on_job_event(event)

        logger.error.assert_called_once()
        kwargs = logger.error.call_args.kwargs
        assert kwargs["job_id"] == JOB_ID
        assert kwargs["error"] == "disk full"
        assert kwargs["exc_info"] is error
        logger.warning.assert_not_called()

    def test_max_instances_is_a_warning(self):
        event = JobSubmissionEvent(
            EVENT_JOB_MAX_INSTANCES, JOB_ID, "default", [datetime.now(timezone.utc)]
        )

        with patch("seo_bot.workers.scheduler.logger") as logger:
            _on_job_event(event)

        logger.warning.assert_called_once()
        logger.error.assert_not_called()

    def test_listener_is_registered(self, settings):
        scheduler = build_scheduler(SingleFlightJob(runner_returning()), settings)

        listeners = {callback: mask for callback, mask in scheduler._listeners}
        assert listeners[_on_job_event] == EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES
