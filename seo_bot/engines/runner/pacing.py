"""Randomized pause between consecutive page audits."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import structlog

from seo_bot.core.config import Settings

logger = structlog.get_logger(__name__)


@dataclass
class Pacer:
    """
    Sleeps for a uniformly random duration in [min_ms, max_ms].
    Keeps consecutive requests against one host spread out.
    """
    min_ms: int = 2_000
    max_ms: int = 5_000
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "Pacer":
        return cls(min_ms=settings.PACING_MIN_MS, max_ms=settings.PACING_MAX_MS)

    def next_delay_ms(self) -> int:
        return self.rng.randint(self.min_ms, self.max_ms)

    async def wait(self) -> None:
        delay_ms = self.next_delay_ms()
        logger.debug("Pacing before next audit", delay_ms=delay_ms)
        await self.sleep(delay_ms / 1000)
