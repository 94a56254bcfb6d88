from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
from typing import Any, Callable, Optional

import pytest

from research_pulse.models import Article, Candidate, Source
from research_pulse.services.adapters import SourceAdapter
from research_pulse.services.llm import ModelError
from research_pulse.services.store import ArticleStore

NOW = dt.datetime(2026, 10, 19, 12, 0, tzinfo=dt.timezone.utc)

def make_article(link: str, days_ago: float = 0, now: dt.datetime = NOW, **kwargs: Any) -> Article:
    fields = {
        "title": f"Title for {link}",
        "source": Source.OPENAI,
        "snippet": f"Snippet for {link}",
    }
    fields.update(kwargs)
    return Article(link=link, date=now - dt.timedelta(days=days_ago), **fields)

@contextlib.asynccontextmanager
async def open_store(db_path: str):
    store = ArticleStore.from_path(db_path)
    await store.open()
    try:
        yield store
    finally:
        await store.close()

async def seed(db_path: str, articles: list[Article]) -> None:
    async with open_store(db_path) as store:
        await store.save(articles)

class FakeModels:
    """Stands in for VertexModels and records every call."""

    def __init__(
        self,
        embeddings: Optional[dict[str, list[float]]] = None,
        embed_error: bool = False,
        json_handler: Optional[Callable[[str], Any]] = None,
        rank_handler: Optional[Callable[[str, list[dict]], list[dict]]] = None,
        dims: int = 768,
    ):
        self.embeddings = embeddings or {}
        self.embed_error = embed_error
        self.json_handler = json_handler
        self.rank_handler = rank_handler
        self.dims = dims
        self.embed_calls: list[str] = []
        self.json_calls: list[str] = []
        self.rank_calls: list[tuple[str, list[dict]]] = []

    async def embed(self, text: str) -> list[float]:
        self.embed_calls.append(text)
        if self.embed_error:
            raise ModelError("embedding endpoint down")
        if text in self.embeddings:
            return self.embeddings[text]
        return [0.5] * self.dims

    async def generate_json(self, prompt: str) -> Any:
        self.json_calls.append(prompt)
        if self.json_handler is None:
            raise ModelError("generation endpoint down")
        return self.json_handler(prompt)

    async def rank(self, query: str, records: list[dict]) -> list[dict]:
        self.rank_calls.append((query, records))
        if self.rank_handler is None:
            raise ModelError("ranking endpoint down")
        return self.rank_handler(query, records)

class FakeAdapter(SourceAdapter):
    def __init__(
        self,
        candidates: Optional[list[Candidate]] = None,
        source: Source = Source.OPENAI,
        name: str = "fake",
        delay: float = 0,
    ):
        self.source = source
        self.name = name
        self.candidates = candidates or []
        self.delay = delay
        self.calls = 0

    async def _fetch(self) -> list[Candidate]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.candidates)

class ExplodingAdapter(SourceAdapter):
    """Raises straight out of fetch(), bypassing the adapter boundary."""

    source = Source.META_AI
    name = "exploding"

    async def fetch(self) -> list[Candidate]:
        raise RuntimeError("adapter bug")

def candidate(link: str, title: str = "A title", source: Source = Source.OPENAI, **kwargs: Any) -> Candidate:
    return Candidate(source=source, title=title, link=link, **kwargs)

@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "news.db")
