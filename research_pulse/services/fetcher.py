from __future__ import annotations

from typing import Any, Optional

import feedparser
import httpx

FEED_ACCEPT = "application/rss+xml, application/xml, text/xml; q=0.1"

class FetchError(Exception):
    pass

class Fetcher:
    """Shared HTTP client for feed and page fetches.

    One httpx.AsyncClient is kept for the life of the process so
    connections are reused across sources and ingestion runs.
    """

    def __init__(self, user_agent: str, timeout_s: int, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._headers = {"User-Agent": user_agent}
        self._timeout = httpx.Timeout(timeout_s)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_feed(self, url: str) -> Any:
        resp = await self._get_client().get(url, headers={"Accept": FEED_ACCEPT})
        resp.raise_for_status()
        parsed = feedparser.parse(resp.content)
        if parsed.bozo and not parsed.entries:
            raise FetchError(f"unparseable feed at {url}: {parsed.get('bozo_exception')}")
        return parsed

    async def fetch_page_html(self, url: str) -> str:
        resp = await self._get_client().get(url)
        resp.raise_for_status()
        return resp.text
