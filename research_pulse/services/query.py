from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Literal, Optional

from dateutil.relativedelta import relativedelta

from research_pulse.models import Article
from research_pulse.services.llm import ModelError
from research_pulse.services.normalize import utc_now
from research_pulse.services.reranker import Reranker
from research_pulse.services.store import ArticleStore

logger = logging.getLogger(__name__)

TimeRange = Literal["2w", "1m", "1y", "all"]
SearchMode = Literal["semantic", "keyword"]

TIME_RANGES: dict[str, Optional[relativedelta]] = {
    "2w": relativedelta(days=14),
    "1m": relativedelta(months=1),
    "1y": relativedelta(years=1),
    "all": None,
}

def start_date_for(time_range: str, now: Optional[dt.datetime] = None) -> Optional[dt.datetime]:
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range {time_range!r}. Valid: {list(TIME_RANGES)}")
    delta = TIME_RANGES[time_range]
    if delta is None:
        return None
    return (now or utc_now()) - delta

@dataclass
class QueryResult:
    articles: list[Article]
    # Approximate: true whenever the page came back full
    has_more: bool

class QueryService:
    def __init__(
        self,
        store: ArticleStore,
        models=None,
        reranker: Optional[Reranker] = None,
        page_size: int = 30,
    ):
        self._store = store
        self._models = models
        self._reranker = reranker
        self.page_size = page_size

    async def _embed_query(self, q: str) -> Optional[list[float]]:
        if self._models is None:
            return None
        try:
            return await self._models.embed(q)
        except ModelError as e:
            logger.warning("Query embedding failed, falling back to browse: %s", e)
            return None

    async def search(
        self,
        q: Optional[str] = None,
        time_range: TimeRange = "2w",
        page: int = 1,
        mode: SearchMode = "semantic",
        now: Optional[dt.datetime] = None,
    ) -> QueryResult:
        if page < 1:
            raise ValueError("page is 1-indexed")
        start_date = start_date_for(time_range, now)
        offset = (page - 1) * self.page_size
        q = (q or "").strip()

        articles: Optional[list[Article]] = None
        if q and mode == "keyword":
            articles = await self._store.search_keyword(q, limit=self.page_size, offset=offset)
        elif q:
            embedding = await self._embed_query(q)
            if embedding is not None:
                # Semantic search spans the whole corpus, the time range only applies to browsing
                articles = await self._store.search_vector(embedding, limit=self.page_size, offset=offset)
                if self._reranker is not None and articles:
                    articles = await self._reranker.rerank(q, articles)

        if articles is None:
            articles = await self._store.list_articles(limit=self.page_size, start_date=start_date, offset=offset)

        return QueryResult(articles=articles, has_more=len(articles) == self.page_size)

    async def lucky(self, window_days: int = 90, now: Optional[dt.datetime] = None) -> Optional[Article]:
        return await self._store.random_since((now or utc_now()) - dt.timedelta(days=window_days))

    async def recent_window(self, weeks: int = 2, now: Optional[dt.datetime] = None) -> tuple[dt.datetime, dt.datetime, list[Article]]:
        end = now or utc_now()
        start = end - dt.timedelta(weeks=weeks)
        return start, end, await self._store.list_by_date_range(start, end)
