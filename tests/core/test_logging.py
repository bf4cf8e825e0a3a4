"""Tests for the structlog configuration."""

import io
import json
import logging

import pytest
import structlog

from seo_bot.core.logging import HANDLER_NAME, configure_logging


@pytest.fixture
def log_stream():
    root = logging.getLogger()
    level = root.level
    stream = io.StringIO()
    yield stream
    for handler in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(handler)
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def json_lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestConfigureLogging:

    def test_json_event_carries_run_context(self, settings, log_stream):
        configure_logging(settings.model_copy(update={"LOG_FORMAT": "json"}), stream=log_stream)
        structlog.contextvars.bind_contextvars(run_id="3f2a9c1d8e7b")

        structlog.get_logger("seo_bot.reports.writer").info("Report saved", rows=2)

        [entry] = json_lines(log_stream)
        assert entry["event"] == "Report saved"
        assert entry["rows"] == 2
        assert entry["run_id"] == "3f2a9c1d8e7b"
        assert entry["severity"] == "INFO"
        assert entry["level"] == "info"
        assert entry["logger"] == "seo_bot.reports.writer"
        assert "timestamp" in entry

    def test_stdlib_records_are_rendered_as_json(self, settings, log_stream):
        configure_logging(settings.model_copy(update={"LOG_FORMAT": "json"}), stream=log_stream)
        structlog.contextvars.bind_contextvars(run_id="3f2a9c1d8e7b")

        logging.getLogger("apscheduler.executors.default").warning(
            "Run time of job %r was missed by %s", "seo_audit", "0:00:05"
        )

        [entry] = json_lines(log_stream)
        assert entry["event"] == "Run time of job 'seo_audit' was missed by 0:00:05"
        assert entry["severity"] == "WARNING"
        assert entry["logger"] == "apscheduler.executors.default"
        assert entry["run_id"] == "3f2a9c1d8e7b"

    def test_exception_is_rendered(self, settings, log_stream):
        configure_logging(settings.model_copy(update={"LOG_FORMAT": "json"}), stream=log_stream)

        structlog.get_logger("seo_bot.workers.scheduler").error(
            "Audit run failed", exc_info=OSError("disk full")
        )

        [entry] = json_lines(log_stream)
        assert entry["severity"] == "ERROR"
        assert "OSError: disk full" in entry["exception"]

    def test_level_filters_events(self, settings, log_stream):
        configure_logging(
            settings.model_copy(update={"LOG_FORMAT": "json", "LOG_LEVEL": "WARNING"}),
            stream=log_stream,
        )

        logger = structlog.get_logger("seo_bot.engines.runner.engine")
        logger.info("Checking page")
        logger.warning("No URLs found in the sitemap, skipping report")

        assert [e["event"] for e in json_lines(log_stream)] == [
            "No URLs found in the sitemap, skipping report"
        ]

    def test_reconfiguring_replaces_handler(self, settings, log_stream):
        configure_logging(settings, stream=io.StringIO())
        configure_logging(settings, stream=log_stream)

        handlers = [h for h in logging.getLogger().handlers if h.get_name() == HANDLER_NAME]
        assert len(handlers) == 1

    def test_console_format(self, settings, log_stream):
        configure_logging(settings, stream=log_stream)

        structlog.get_logger("seo_bot.main").info("SEO audit bot is running")

        assert "SEO audit bot is running" in log_stream.getvalue()

    def test_production_silences_noisy_libraries(self, settings, log_stream):
        httpx_logger = logging.getLogger("httpx")
        before = httpx_logger.level
        try:
            configure_logging(settings.model_copy(update={"ENV": "production"}), stream=log_stream)
            assert httpx_logger.level == logging.WARNING
        finally:
            httpx_logger.setLevel(before)
