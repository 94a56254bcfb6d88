from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from research_pulse.models import Article
from research_pulse.services.llm import ModelError
from research_pulse.services.store import ArticleStore, StoreError

logger = logging.getLogger(__name__)

MAX_TAGS = 4

TAGS_PROMPT = """Analyze this article snippet and title. Generate 3-4 relevant technical tags (e.g., "LLM", "Computer Vision", "Reinforcement Learning"). Return a JSON array of strings.

Title: {title}
Snippet: {snippet}"""

@dataclass
class EnrichStats:
    scanned: int = 0
    pending: int = 0
    updated: int = 0
    tag_failures: int = 0
    embedding_failures: int = 0
    errors: list[str] = field(default_factory=list)

def embedding_text(article: Article) -> str:
    return f"{article.title} {article.snippet}".strip()

def parse_tags(payload: Any) -> list[str]:
    if isinstance(payload, dict):
        payload = payload.get("tags")
    if not isinstance(payload, list):
        raise ModelError(f"expected a JSON array of tags, got {payload!r}")
    tags = []
    for t in payload:
        if isinstance(t, str) and t.strip() and t.strip() not in tags:
            tags.append(t.strip())
    if not tags:
        raise ModelError("model returned no usable tags")
    return tags[:MAX_TAGS]

class MetadataEnricher:
    """Backfills tags and embeddings for stored articles missing them.

    Only the missing fields are computed, so an already enriched article
    costs no model calls. Each updated article is saved on its own right
    away, as a full record, so a later failure in the pass loses nothing.
    """

    def __init__(
        self,
        store: ArticleStore,
        models,
        batch_size: int = 5,
        batch_delay: float = 0.5,
        window: Optional[int] = 1000,
    ):
        self._store = store
        self._models = models
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.window = window

    async def generate_tags(self, article: Article) -> Optional[list[str]]:
        prompt = TAGS_PROMPT.format(title=article.title, snippet=article.snippet)
        try:
            return parse_tags(await self._models.generate_json(prompt))
        except ModelError as e:
            logger.warning("Tagging failed for %s: %s", article.link, e)
            return None

    async def generate_embedding(self, article: Article) -> Optional[list[float]]:
        try:
            return await self._models.embed(embedding_text(article))
        except ModelError as e:
            logger.warning("Embedding failed for %s: %s", article.link, e)
            return None

    async def enrich_article(self, article: Article, stats: EnrichStats) -> bool:
        updates: dict[str, Any] = {}
        if article.needs_tags:
            tags = await self.generate_tags(article)
            if tags:
                updates["tags"] = tags
            else:
                stats.tag_failures += 1
        if article.needs_embedding:
            embedding = await self.generate_embedding(article)
            if embedding:
                updates["embedding"] = embedding
            else:
                stats.embedding_failures += 1
        if not updates:
            return False

        # Upsert overwrites every mutable field, so send the full record
        enriched = dataclasses.replace(article, score=None, **updates)
        try:
            await self._store.save([enriched])
        except StoreError as e:
            stats.errors.append(f"save {article.link}: {e}")
            return False
        article.tags = enriched.tags
        article.embedding = enriched.embedding
        return True

    async def enrich_missing(self, all_articles: bool = False) -> EnrichStats:
        """Enrich the most recent `window` articles, or the whole store."""
        stats = EnrichStats()
        articles = await self._store.list_articles(limit=None if all_articles else self.window)
        stats.scanned = len(articles)
        pending = [a for a in articles if a.needs_tags or a.needs_embedding]
        stats.pending = len(pending)
        if not pending:
            return stats

        logger.info("Enriching %d of %d articles", len(pending), len(articles))
        for start in range(0, len(pending), self.batch_size):
            batch = pending[start:start + self.batch_size]
            results = await asyncio.gather(*(self.enrich_article(a, stats) for a in batch))
            stats.updated += sum(1 for r in results if r)
            if self.batch_delay and start + self.batch_size < len(pending):
                # Soft backpressure for the model endpoints
                await asyncio.sleep(self.batch_delay)

        logger.info(
            "Enrichment done: %d updated, %d tag failures, %d embedding failures",
            stats.updated, stats.tag_failures, stats.embedding_failures,
        )
        return stats
