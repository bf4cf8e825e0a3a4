"""
Configuration system with environment-based settings.
Uses pydantic-settings for validation and type safety.

Settings are frozen: every component receives the same immutable
instance at construction instead of reading module-level constants.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urljoin, urlparse

from apscheduler.triggers.cron import CronTrigger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        frozen=True,
    )

    # Application
    APP_VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"

    # Target site
    SITE_ROOT: str = "https://mentoreducation.co.uk"
    SITEMAP_PATH: str = "/page-sitemap.xml"
    SITEMAP_FETCH_TIMEOUT: float = 30.0

    # Reports
    REPORTS_DIR: Path = Path("seo_reports")

    # Scheduling
    SCHEDULE_CRON: str = "0 */2 * * *"    # every 2 hours, on the hour
    SCHEDULER_TIMEZONE: str = "UTC"
    RUN_ON_STARTUP: bool = True

    # Browser
    NAVIGATION_TIMEOUT_MS: int = Field(30_000, gt=0)
    BROWSER_USER_AGENT: str = DESKTOP_USER_AGENT
    BROWSER_ARGS: list[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
    ]

    # Pacing between consecutive audits
    PACING_MIN_MS: int = Field(2_000, ge=0)
    PACING_MAX_MS: int = Field(5_000, ge=0)

    # Lighthouse
    LIGHTHOUSE_BINARY: str = "lighthouse"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    @field_validator("SITE_ROOT")
    @classmethod
    def check_site_root(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"SITE_ROOT must be an absolute http(s) URL, got {v!r}")
        return v

    @field_validator("SCHEDULE_CRON")
    @classmethod
    def check_crontab(cls, v: str) -> str:
        CronTrigger.from_crontab(v)
        return v

    @model_validator(mode="after")
    def check_pacing_window(self) -> "Settings":
        if self.PACING_MIN_MS > self.PACING_MAX_MS:
            raise ValueError("PACING_MIN_MS must not exceed PACING_MAX_MS")
        return self

    @property
    def sitemap_url(self) -> str:
        """Absolute sitemap URL resolved against the site root."""
        return urljoin(self.SITE_ROOT, self.SITEMAP_PATH)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - created once per process."""
    return Settings()
