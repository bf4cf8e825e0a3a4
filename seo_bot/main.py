"""
SEO Bot - process entry point.
Long-running: audits the sitemap on start-up and then on the cron schedule
until SIGINT/SIGTERM.
"""

import asyncio
import contextlib
import signal

import structlog

from seo_bot.core.config import Settings, get_settings
from seo_bot.core.logging import configure_logging
from seo_bot.engines.runner.engine import AuditRunner
from seo_bot.workers.scheduler import SingleFlightJob, build_scheduler

logger = structlog.get_logger(__name__)


async def serve(settings: Settings) -> None:
    """Start the scheduler and block until a stop signal arrives."""
    job = SingleFlightJob(AuditRunner(settings))
    scheduler = build_scheduler(job, settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    scheduler.start()
    logger.info(
        "SEO audit bot is running",
        version=settings.APP_VERSION,
        sitemap=settings.sitemap_url,
        schedule=settings.SCHEDULE_CRON,
        reports_dir=str(settings.REPORTS_DIR),
    )

    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("SEO audit bot stopped")


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
