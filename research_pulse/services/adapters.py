from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional, Sequence

import httpx

from research_pulse.models import Candidate, Source
from research_pulse.services.extractors import ExtractionStrategy
from research_pulse.services.fetcher import Fetcher, FetchError

logger = logging.getLogger(__name__)

def _entry_datetime(entry: Any) -> Optional[dt.datetime]:
    # feedparser exposes: published_parsed / updated_parsed as time.struct_time
    for key in ("published_parsed", "updated_parsed"):
        t = entry.get(key)
        if t:
            try:
                return dt.datetime(*t[:6], tzinfo=dt.timezone.utc)
            except (TypeError, ValueError):
                pass
    return None

def _entry_snippet(entry: Any) -> Optional[str]:
    summary = entry.get("summary")
    if summary:
        return summary
    content = entry.get("content")
    if content and isinstance(content, list):
        return content[0].get("value")
    return None

def _entry_categories(entry: Any) -> list[str]:
    terms = []
    for tag in entry.get("tags") or []:
        term = tag.get("term")
        if term:
            terms.append(term)
    return terms

def entry_to_candidate(entry: Any, source: Source) -> Candidate:
    return Candidate(
        source=source,
        title=entry.get("title"),
        link=entry.get("link"),
        date=_entry_datetime(entry) or entry.get("published") or entry.get("updated"),
        snippet=_entry_snippet(entry),
        categories=_entry_categories(entry),
    )

class SourceAdapter:
    """Produces raw candidates for one source endpoint.

    fetch() never raises: every fetch or parse error is logged and the
    source contributes zero candidates to the run.
    """

    source: Source
    name: str

    async def fetch(self) -> list[Candidate]:
        try:
            items = await self._fetch()
        except Exception as e:
            logger.warning("Source %s unavailable: %s: %s", self.name, type(e).__name__, e)
            return []
        logger.info("Source %s yielded %d candidates", self.name, len(items))
        return items

    async def _fetch(self) -> list[Candidate]:
        raise NotImplementedError

class RssAdapter(SourceAdapter):
    def __init__(self, fetcher: Fetcher, source: Source, urls: Sequence[str], max_items: int = 50, name: Optional[str] = None):
        if not urls:
            raise ValueError("RssAdapter needs at least one feed url")
        self._fetcher = fetcher
        self.source = source
        self.urls = list(urls)
        self.max_items = max_items
        self.name = name or f"{source.value} RSS"

    async def _fetch(self) -> list[Candidate]:
        # Mirrors are tried in order, the first non-empty one wins
        for url in self.urls:
            try:
                parsed = await self._fetcher.fetch_feed(url)
            except (httpx.HTTPError, FetchError) as e:
                logger.info("Feed %s failed for %s: %s: %s", url, self.name, type(e).__name__, e)
                continue
            entries = (parsed.entries or [])[: self.max_items]
            candidates = [entry_to_candidate(entry, self.source) for entry in entries]
            if candidates:
                return candidates
            logger.info("Feed %s for %s returned no entries", url, self.name)
        return []

class HtmlScrapeAdapter(SourceAdapter):
    def __init__(
        self,
        fetcher: Fetcher,
        page_url: str,
        strategy: ExtractionStrategy,
        max_items: int = 10,
        name: Optional[str] = None,
    ):
        self._fetcher = fetcher
        self.page_url = page_url
        self.strategy = strategy
        self.source = strategy.source
        self.max_items = max_items
        self.name = name or f"{strategy.source.value} scrape {page_url}"

    async def _fetch(self) -> list[Candidate]:
        html = await self._fetcher.fetch_page_html(self.page_url)
        return self.strategy.extract(html)[: self.max_items]
