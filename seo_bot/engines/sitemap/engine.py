"""
Sitemap Reader - discovers page URLs from a single XML sitemap.

Only <urlset> documents are read. A sitemap index, an empty document or
any fetch/parse failure yields an empty list; the caller treats "no URLs"
as the failure signal.
"""

from __future__ import annotations

from urllib.parse import urlparse

import httpx
import structlog
from lxml import etree

from seo_bot.core.config import Settings, get_settings
from seo_bot.engines.base import SitemapError

logger = structlog.get_logger(__name__)


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def is_absolute_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_urlset(content: bytes) -> list[str]:
    """
    Extract <url><loc> values from a sitemap document, in document order.
    Raises SitemapError if the document is not well-formed XML or declares
    a DOCTYPE.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
    try:
        root = etree.fromstring(content, parser=parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise SitemapError(f"Malformed sitemap XML: {e}") from e

    # Entities are never expanded, so a DTD could only silently truncate <loc>
    docinfo = root.getroottree().docinfo
    if docinfo.doctype or docinfo.internalDTD is not None:
        raise SitemapError("Sitemap declares a DOCTYPE, refusing to parse it")

    if _local_name(root) != "urlset":
        logger.warning("Sitemap has no urlset root", root=_local_name(root))
        return []

    urls: list[str] = []
    for entry in root:
        if not isinstance(entry.tag, str) or _local_name(entry) != "url":
            continue
        loc = next(
            (child for child in entry if isinstance(child.tag, str) and _local_name(child) == "loc"),
            None,
        )
        text = (loc.text or "").strip() if loc is not None else ""
        if not is_absolute_http_url(text):
            logger.warning("Skipping invalid sitemap entry", loc=text)
            continue
        urls.append(text)
    return urls


class SitemapReader:
    """Fetch a sitemap over HTTP and return the page URLs it declares."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def fetch(self, sitemap_url: str) -> list[str]:
        """Return sitemap URLs in document order. Never raises."""
        try:
            content = await self._download(sitemap_url)
            urls = parse_urlset(content)
        except (httpx.HTTPError, httpx.InvalidURL, SitemapError) as e:
            logger.error("Failed to fetch sitemap", url=sitemap_url, error=str(e))
            return []

        logger.info("Sitemap URLs discovered", url=sitemap_url, count=len(urls))
        return urls

    async def _download(self, sitemap_url: str) -> bytes:
        headers = {
            "User-Agent": self.settings.BROWSER_USER_AGENT,
            "Accept": "application/xml,text/xml;q=0.9,*/*;q=0.8",
        }
        async with httpx.AsyncClient(
            headers=headers,
            follow_redirects=True,
            timeout=self.settings.SITEMAP_FETCH_TIMEOUT,
            transport=self._transport,
        ) as client:
            response = await client.get(sitemap_url)
            response.raise_for_status()
            return response.content
