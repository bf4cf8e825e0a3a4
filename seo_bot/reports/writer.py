"""
Report Writer - persists one AuditRun as an XLSX workbook.

One file per run, named after the run start time. Files are created
exclusively so an existing report is never overwritten. I/O errors
propagate to the caller and leave no partial file behind.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import structlog
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from seo_bot.core.config import Settings, get_settings
from seo_bot.engines.base import AuditRun

logger = structlog.get_logger(__name__)

SHEET_TITLE = "SEO Report"
COLUMNS = [
    # (header, width)
    ("URL", 50),
    ("Performance Score", 20),
]


def filesystem_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with milliseconds, ':' and '.' replaced by '-'."""
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    iso = iso.replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def report_filename(started_at: datetime) -> str:
    return f"seo-report-{filesystem_timestamp(started_at)}.xlsx"


def build_workbook(run: AuditRun) -> Workbook:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE

    sheet.append([header for header, _ in COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for index, (_, width) in enumerate(COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    for outcome in run.outcomes:
        sheet.append([outcome.url, outcome.result.report_value])

    return workbook


class ReportWriter:
    """Writes AuditRun results under REPORTS_DIR."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def reports_dir(self) -> Path:
        return Path(self.settings.REPORTS_DIR)

    def write(self, run: AuditRun) -> Path:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        path = self.reports_dir / report_filename(run.started_at)

        workbook = build_workbook(run)
        with open(path, "xb") as fh:
            try:
                workbook.save(fh)
            except BaseException:
                # Only the file created above is removed, never an older report
                fh.close()
                path.unlink(missing_ok=True)
                raise

        logger.info(
            "Report saved",
            path=str(path),
            rows=len(run.outcomes),
            succeeded=run.succeeded,
            failed=run.failed,
        )
        return path
