"""
Shared types and exceptions for the audit pipeline.

Design principles:
- A per-URL result is a tagged union: AuditSuccess | AuditFailure
- Outcomes are frozen once created and kept in sitemap order
- Failures local to one URL become AuditFailure values, never exceptions
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────

class SeoBotError(Exception):
    """Base class for all pipeline errors."""


class SitemapError(SeoBotError):
    """Sitemap could not be fetched or parsed."""


class ScoringError(SeoBotError):
    """Lighthouse did not produce a usable performance score."""


class SessionLaunchError(SeoBotError):
    """The shared browser session could not be started. Fatal to a run."""


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class FailureStage(str, Enum):
    NAVIGATION = "navigation"   # Page did not reach DOM-ready in time
    SCORING = "scoring"         # Lighthouse failed or returned no score


# ─────────────────────────────────────────────
# Per-URL results
# ─────────────────────────────────────────────

class AuditSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    score: int = Field(ge=0, le=100)

    @property
    def report_value(self) -> int:
        return self.score


class AuditFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    MARKER: ClassVar[str] = "Error"

    status: Literal["failed"] = "failed"
    reason: str
    stage: FailureStage

    @property
    def report_value(self) -> str:
        return self.MARKER

    def __str__(self) -> str:
        return self.MARKER


ScoreResult = Annotated[Union[AuditSuccess, AuditFailure], Field(discriminator="status")]


class AuditOutcome(BaseModel):
    """Result of auditing one sitemap URL."""
    model_config = ConfigDict(frozen=True)

    url: str
    result: ScoreResult
    audited_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return isinstance(self.result, AuditSuccess)


class AuditRun(BaseModel):
    """All outcomes of one pipeline execution, in sitemap order."""
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sitemap_url: str
    outcomes: list[AuditOutcome] = Field(default_factory=list)
    report_path: Path | None = None

    @property
    def is_empty(self) -> bool:
        return not self.outcomes

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded
