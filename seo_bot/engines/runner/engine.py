"""
Audit Runner - one full pass over a site's sitemap.

Flow:
1. Launch one shared headless Chromium for the run (fatal on failure)
2. Read the sitemap; no URLs means no report
3. For each URL, in sitemap order:
   fresh context → DOM-ready navigation → Lighthouse score → close context
   with a randomized pause between consecutive URLs
4. Close the browser
5. Write the report and attach its path to the returned AuditRun

Per-URL failures are recorded as AuditFailure rows and never stop the loop.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Callable

import structlog
from playwright.async_api import Browser, async_playwright
from playwright.async_api import Error as PlaywrightError

from seo_bot.core.config import Settings, get_settings
from seo_bot.engines.base import (
    AuditFailure,
    AuditOutcome,
    AuditRun,
    FailureStage,
    SessionLaunchError,
)
from seo_bot.engines.performance.engine import PerformanceAuditor
from seo_bot.engines.runner.pacing import Pacer
from seo_bot.engines.sitemap.engine import SitemapReader
from seo_bot.reports.writer import ReportWriter

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def launch_browser(settings: Settings) -> AsyncIterator[Browser]:
    """Shared Chromium for one run. Launch errors become SessionLaunchError."""
    try:
        pw = await async_playwright().start()
    except Exception as e:
        raise SessionLaunchError(f"Could not start Playwright: {e}") from e

    try:
        try:
            browser = await pw.chromium.launch(headless=True, args=settings.BROWSER_ARGS)
        except PlaywrightError as e:
            raise SessionLaunchError(f"Could not launch browser: {e}") from e

        try:
            yield browser
        finally:
            await browser.close()
    finally:
        await pw.stop()


class AuditRunner:
    """Orchestrates sitemap discovery, page audits and report output."""

    def __init__(
        self,
        settings: Settings | None = None,
        sitemap_reader: SitemapReader | None = None,
        auditor: PerformanceAuditor | None = None,
        pacer: Pacer | None = None,
        report_writer: ReportWriter | None = None,
        browser_factory: Callable[[Settings], AbstractAsyncContextManager[Browser]] = launch_browser,
    ):
        self.settings = settings or get_settings()
        self.sitemap_reader = sitemap_reader or SitemapReader(self.settings)
        self.auditor = auditor or PerformanceAuditor(self.settings)
        self.pacer = pacer or Pacer.from_settings(self.settings)
        self.report_writer = report_writer or ReportWriter(self.settings)
        self.browser_factory = browser_factory

    async def run(self) -> AuditRun:
        run = AuditRun(sitemap_url=self.settings.sitemap_url)
        structlog.contextvars.bind_contextvars(run_id=run.run_id)
        try:
            logger.info("Starting SEO audit", sitemap=run.sitemap_url)

            async with self.browser_factory(self.settings) as browser:
                urls = await self.sitemap_reader.fetch(run.sitemap_url)
                if not urls:
                    logger.warning("No URLs found in the sitemap, skipping report")
                    return run

                outcomes = await self._audit_all(browser, urls)

            run = run.model_copy(update={"outcomes": outcomes})
            report_path = self.report_writer.write(run)
            run = run.model_copy(update={"report_path": report_path})

            logger.info(
                "SEO audit completed",
                report=str(report_path),
                audited=len(run.outcomes),
                failed=run.failed,
            )
            return run
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

    async def _audit_all(self, browser: Browser, urls: list[str]) -> list[AuditOutcome]:
        outcomes: list[AuditOutcome] = []
        for index, url in enumerate(urls):
            if index:
                await self.pacer.wait()
            logger.info("Checking page", url=url, position=index + 1, total=len(urls))
            outcomes.append(await self._audit_one(browser, url))
        return outcomes

    async def _audit_one(self, browser: Browser, url: str) -> AuditOutcome:
        try:
            context = await browser.new_context(user_agent=self.settings.BROWSER_USER_AGENT)
        except PlaywrightError as e:
            return self._navigation_failure(url, e)

        try:
            page = await context.new_page()
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.NAVIGATION_TIMEOUT_MS,
            )
        except PlaywrightError as e:
            return self._navigation_failure(url, e)
        else:
            return AuditOutcome(url=url, result=await self.auditor.audit(url))
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning("Failed to close page context", url=url, error=str(e))

    @staticmethod
    def _navigation_failure(url: str, error: Exception) -> AuditOutcome:
        logger.error("Failed to load page", url=url, error=str(error))
        return AuditOutcome(
            url=url,
            result=AuditFailure(reason=str(error), stage=FailureStage.NAVIGATION),
        )
