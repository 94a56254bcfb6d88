from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from research_pulse.models import Article, Candidate
from research_pulse.services.adapters import SourceAdapter
from research_pulse.services.content_filter import ContentFilter
from research_pulse.services.enrich import EnrichStats, MetadataEnricher
from research_pulse.services.normalize import deduplicate, normalize_candidates, utc_now
from research_pulse.services.store import ArticleStore

logger = logging.getLogger(__name__)

@dataclass
class IngestStats:
    sources_processed: int = 0
    sources_failed: int = 0
    candidates_seen: int = 0
    normalized: int = 0
    unique: int = 0
    filtered_out: int = 0
    saved: int = 0
    enrichment: Optional[EnrichStats] = None
    errors: list[str] = field(default_factory=list)

@dataclass
class IngestResult:
    articles: list[Article]
    stats: IngestStats
    started_at: dt.datetime
    finished_at: dt.datetime

    @property
    def count(self) -> int:
        return len(self.articles)

class IngestionService:
    """Fan-out over every source adapter, then normalize, dedupe, save, enrich.

    Each adapter runs as its own task with its own timeout, so a slow or
    broken source only loses its own candidates. A store write failure is
    the one error that propagates to the caller.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        store: ArticleStore,
        enricher: Optional[MetadataEnricher] = None,
        content_filter: Optional[ContentFilter] = None,
        adapter_timeout: float = 60,
    ):
        self.adapters = list(adapters)
        self._store = store
        self._enricher = enricher
        self._content_filter = content_filter
        self.adapter_timeout = adapter_timeout

    async def _run_adapter(self, adapter: SourceAdapter) -> list[Candidate]:
        return await asyncio.wait_for(adapter.fetch(), timeout=self.adapter_timeout)

    async def fetch_candidates(self, stats: IngestStats) -> list[Candidate]:
        results = await asyncio.gather(
            *(self._run_adapter(a) for a in self.adapters),
            return_exceptions=True,
        )
        candidates: list[Candidate] = []
        for adapter, result in zip(self.adapters, results):
            if isinstance(result, BaseException):
                stats.sources_failed += 1
                reason = "timed out" if isinstance(result, asyncio.TimeoutError) else f"{type(result).__name__}: {result}"
                stats.errors.append(f"source {adapter.name}: {reason}")
                logger.warning("Source %s failed: %s", adapter.name, reason)
                continue
            stats.sources_processed += 1
            candidates.extend(result)
        return candidates

    async def ingest_all(self, refresh: bool = False) -> IngestResult:
        """Ingest every source once.

        refresh=True widens the enrichment pass from the recent window to
        the whole store.
        """
        started_at = utc_now()
        stats = IngestStats()
        logger.info("Starting ingestion over %d sources", len(self.adapters))

        candidates = await self.fetch_candidates(stats)
        stats.candidates_seen = len(candidates)

        articles = normalize_candidates(candidates, now=started_at)
        stats.normalized = len(articles)

        unique = deduplicate(articles)
        stats.unique = len(unique)

        if self._content_filter is not None and unique:
            kept = await self._content_filter.filter(unique)
            stats.filtered_out = len(unique) - len(kept)
            unique = kept

        # StoreError propagates: the run is reported failed, nothing partial is committed
        stats.saved = await self._store.save(unique)
        logger.info("Ingested %d unique articles from %d candidates", stats.unique, stats.candidates_seen)

        if self._enricher is not None:
            stats.enrichment = await self._enricher.enrich_missing(all_articles=refresh)

        return IngestResult(articles=unique, stats=stats, started_at=started_at, finished_at=utc_now())
