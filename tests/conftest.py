import pytest

from seo_bot.core.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        SITE_ROOT="https://example.com",
        SITEMAP_PATH="/page-sitemap.xml",
        REPORTS_DIR=tmp_path / "seo_reports",
    )
