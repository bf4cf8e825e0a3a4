"""
Performance Auditor - mobile Lighthouse score for a single URL.

Flow per call:
1. Launch a dedicated Chromium with a DevTools port (Playwright)
2. Run the Lighthouse CLI attached to that port, performance category only,
   mobile form factor at 375x812 @2x
3. Scale categories.performance.score from [0, 1] to [0, 100]
4. Tear down the Lighthouse process and the browser on every exit path

Any failure becomes an AuditFailure; audit() never raises.
"""

from __future__ import annotations

import asyncio
import json
import socket
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from playwright.async_api import async_playwright

from seo_bot.core.config import Settings, get_settings
from seo_bot.engines.base import AuditFailure, AuditSuccess, FailureStage, ScoringError

logger = structlog.get_logger(__name__)

MOBILE_SCREEN = {"width": 375, "height": 812, "deviceScaleFactor": 2}


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def lighthouse_flags(port: int) -> list[str]:
    return [
        f"--port={port}",
        "--output=json",
        "--output-path=stdout",
        "--quiet",
        "--only-categories=performance",
        "--form-factor=mobile",
        "--screenEmulation.mobile",
        f"--screenEmulation.width={MOBILE_SCREEN['width']}",
        f"--screenEmulation.height={MOBILE_SCREEN['height']}",
        f"--screenEmulation.deviceScaleFactor={MOBILE_SCREEN['deviceScaleFactor']}",
    ]


def extract_performance_score(report: dict[str, Any]) -> int:
    """Return the performance score as a 0-100 integer from a Lighthouse result."""
    runtime_error = report.get("runtimeError")
    if runtime_error:
        if isinstance(runtime_error, dict):
            runtime_error = runtime_error.get("message") or runtime_error.get("code")
        raise ScoringError(f"Lighthouse runtime error: {runtime_error}")

    score = report.get("categories", {}).get("performance", {}).get("score")
    if score is None:
        raise ScoringError("Lighthouse returned no performance score")

    form_factor = report.get("configSettings", {}).get("formFactor")
    logger.debug("Lighthouse result", form_factor=form_factor, raw_score=score)
    return round(float(score) * 100)


class PerformanceAuditor:
    """Scores one page with Lighthouse in an isolated debug browser."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def audit(self, url: str) -> AuditSuccess | AuditFailure:
        try:
            async with self._debug_browser() as port:
                report = await self._run_lighthouse(url, port)
            result = AuditSuccess(score=extract_performance_score(report))
        except Exception as e:
            logger.error("Error auditing page", url=url, error=str(e))
            return AuditFailure(reason=str(e) or type(e).__name__, stage=FailureStage.SCORING)

        logger.info("Page scored", url=url, score=result.score)
        return result

    @asynccontextmanager
    async def _debug_browser(self) -> AsyncIterator[int]:
        """Chromium exposing the DevTools protocol on a free local port."""
        port = find_free_port()
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=True,
                args=[*self.settings.BROWSER_ARGS, f"--remote-debugging-port={port}"],
            )
            try:
                yield port
            finally:
                await browser.close()

    async def _run_lighthouse(self, url: str, port: int) -> dict[str, Any]:
        """Run the Lighthouse CLI and return its parsed JSON result."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.settings.LIGHTHOUSE_BINARY,
                url,
                *lighthouse_flags(port),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ScoringError(f"Could not start Lighthouse: {e}") from e

        try:
            stdout, stderr = await proc.communicate()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[-500:]
            raise ScoringError(f"Lighthouse exited with {proc.returncode}: {detail}")

        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ScoringError(f"Lighthouse produced invalid JSON: {e}") from e
