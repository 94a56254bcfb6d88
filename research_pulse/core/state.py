from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from research_pulse.core.config import Settings
from research_pulse.services.adapters import SourceAdapter
from research_pulse.services.content_filter import ContentFilter
from research_pulse.services.enrich import MetadataEnricher
from research_pulse.services.fetcher import Fetcher
from research_pulse.services.ingest import IngestionService
from research_pulse.services.llm import VertexModels
from research_pulse.services.query import QueryService
from research_pulse.services.reranker import Reranker
from research_pulse.services.sources import build_adapters
from research_pulse.services.store import ArticleStore

logger = logging.getLogger(__name__)

@dataclass
class AppState:
    """Long-lived resources and the services wired from them.

    Built once per process; open()/close() are called by whoever owns the
    process (the FastAPI startup/shutdown hooks or a CLI command).
    """

    settings: Settings
    store: ArticleStore
    fetcher: Fetcher
    models: Any
    content_filter: ContentFilter
    enricher: MetadataEnricher
    ingestion: IngestionService
    query: QueryService

    async def open(self) -> None:
        await self.store.open()

    async def close(self) -> None:
        await self.fetcher.aclose()
        aclose = getattr(self.models, "aclose", None)
        if aclose is not None:
            await aclose()
        await self.store.close()

def build_state(
    settings: Settings,
    store: Optional[ArticleStore] = None,
    models: Any = None,
    fetcher: Optional[Fetcher] = None,
    adapters: Optional[Sequence[SourceAdapter]] = None,
) -> AppState:
    store = store or ArticleStore.from_path(settings.db_path)
    fetcher = fetcher or Fetcher(settings.user_agent, settings.request_timeout_seconds)
    if models is None:
        models = VertexModels(
            project=settings.google_cloud_project,
            location=settings.google_cloud_location,
            embedding_model=settings.embedding_model,
            embedding_dimensions=settings.embedding_dimensions,
            embedding_max_chars=settings.embedding_max_chars,
            generation_model=settings.generation_model,
            rerank_model=settings.rerank_model,
            timeout_s=settings.model_timeout_seconds,
        )
    if adapters is None:
        adapters = build_adapters(
            fetcher,
            max_items_per_feed=settings.max_items_per_feed,
            scrape_enabled=settings.scrape_enabled,
            scrape_max_items=settings.scrape_max_items,
        )

    content_filter = ContentFilter(
        models,
        batch_size=settings.filter_batch_size,
        on_batch_error=settings.filter_on_batch_error,
    )
    enricher = MetadataEnricher(
        store,
        models,
        batch_size=settings.enrich_batch_size,
        batch_delay=settings.enrich_batch_delay_seconds,
        window=settings.enrich_window,
    )
    ingestion = IngestionService(
        adapters,
        store,
        enricher=enricher,
        content_filter=content_filter if settings.filter_on_ingest else None,
        adapter_timeout=settings.adapter_timeout_seconds,
    )
    query = QueryService(
        store,
        models=models,
        reranker=Reranker(models) if settings.rerank_enabled else None,
        page_size=settings.page_size,
    )
    return AppState(
        settings=settings,
        store=store,
        fetcher=fetcher,
        models=models,
        content_filter=content_filter,
        enricher=enricher,
        ingestion=ingestion,
        query=query,
    )
