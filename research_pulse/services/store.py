from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional, Sequence

import numpy as np
from sqlalchemy import Select, delete, desc, func, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from research_pulse.core.db import create_engine, create_sessionmaker, ensure_db_dir, init_db
from research_pulse.models import Article, ArticleRow, Source

logger = logging.getLogger(__name__)

# Fields a conflicting save overwrites; link and source are fixed at first insert
MUTABLE_FIELDS = ("title", "snippet", "date", "tags", "embedding")

class StoreError(Exception):
    """A write failed and its whole batch was rolled back."""

def _to_row_values(article: Article) -> dict[str, Any]:
    return {
        "link": article.link,
        "title": article.title,
        "date": article.date,
        "source": article.source.value,
        "snippet": article.snippet,
        "tags": list(article.tags) if article.tags is not None else None,
        "embedding": list(article.embedding) if article.embedding is not None else None,
    }

def _to_article(row: ArticleRow) -> Optional[Article]:
    try:
        source = Source(row.source)
    except ValueError:
        logger.debug("Skipping row %s with unknown source %r", row.link, row.source)
        return None
    return Article(
        link=row.link,
        title=row.title or "",
        date=row.date,
        source=source,
        snippet=row.snippet or "",
        tags=row.tags,
        embedding=row.embedding,
    )

def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    norms = np.where(norms == 0, 1.0, norms)
    return (matrix @ query) / norms

class ArticleStore:
    """Article persistence keyed by link.

    Reads never raise: a storage error is logged and an empty result is
    returned. Writes run in one transaction per call and raise StoreError
    after rollback.
    """

    def __init__(self, engine: AsyncEngine, db_path: Optional[str] = None):
        self._engine = engine
        self._db_path = db_path
        self._sessions = create_sessionmaker(engine)

    @classmethod
    def from_path(cls, db_path: str) -> "ArticleStore":
        return cls(create_engine(db_path), db_path=db_path)

    async def open(self) -> None:
        if self._db_path:
            ensure_db_dir(self._db_path)
        await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    # -- writes --

    async def save(self, articles: Sequence[Article]) -> int:
        if not articles:
            return 0
        table = ArticleRow.__table__
        stmt = sqlite_insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.link],
            set_={name: stmt.excluded[name] for name in MUTABLE_FIELDS},
        )
        values = [_to_row_values(a) for a in articles]
        try:
            async with self._sessions() as session:
                async with session.begin():
                    await session.execute(stmt, values)
        except SQLAlchemyError as e:
            logger.error("Failed to save %d articles, batch rolled back: %s", len(values), e)
            raise StoreError(f"save failed: {type(e).__name__}: {e}") from e
        return len(values)

    async def delete(self, links: Sequence[str]) -> int:
        if not links:
            return 0
        try:
            async with self._sessions() as session:
                async with session.begin():
                    res = await session.execute(delete(ArticleRow).where(ArticleRow.link.in_(list(links))))
                    return res.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("Failed to delete %d articles, rolled back: %s", len(links), e)
            raise StoreError(f"delete failed: {type(e).__name__}: {e}") from e

    async def delete_malformed(self) -> int:
        known = [s.value for s in Source]
        cond = or_(
            ArticleRow.source.is_(None),
            ArticleRow.source.not_in(known),
            ArticleRow.title.is_(None),
            ArticleRow.title == "",
        )
        try:
            async with self._sessions() as session:
                async with session.begin():
                    res = await session.execute(delete(ArticleRow).where(cond))
                    return res.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("Failed to purge malformed rows, rolled back: %s", e)
            raise StoreError(f"purge failed: {type(e).__name__}: {e}") from e

    # -- reads --

    async def _read(self, stmt: Select) -> list[Article]:
        try:
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error("Article read failed, returning empty result: %s", e)
            return []
        articles = []
        for row in rows:
            article = _to_article(row)
            if article is not None:
                articles.append(article)
        return articles

    async def list_articles(
        self,
        limit: Optional[int] = 100,
        start_date: Optional[dt.datetime] = None,
        offset: int = 0,
    ) -> list[Article]:
        stmt = select(ArticleRow).order_by(desc(ArticleRow.date), ArticleRow.link)
        if start_date is not None:
            stmt = stmt.where(ArticleRow.date >= start_date)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._read(stmt)

    async def list_by_date_range(self, start: dt.datetime, end: dt.datetime) -> list[Article]:
        stmt = (
            select(ArticleRow)
            .where(ArticleRow.date >= start, ArticleRow.date <= end)
            .order_by(desc(ArticleRow.date), ArticleRow.link)
        )
        return await self._read(stmt)

    async def search_keyword(self, query: str, limit: int, offset: int = 0) -> list[Article]:
        pattern = f"%{_escape_like(query.strip())}%"
        stmt = (
            select(ArticleRow)
            .where(
                or_(
                    ArticleRow.title.ilike(pattern, escape="\\"),
                    ArticleRow.snippet.ilike(pattern, escape="\\"),
                )
            )
            .order_by(desc(ArticleRow.date), ArticleRow.link)
            .offset(offset)
            .limit(limit)
        )
        return await self._read(stmt)

    async def search_vector(self, query_embedding: Sequence[float], limit: int, offset: int = 0) -> list[Article]:
        # No native vector type in sqlite: rank application-side
        stmt = select(ArticleRow).where(ArticleRow.embedding.is_not(None))
        candidates = [
            a for a in await self._read(stmt)
            if a.embedding and len(a.embedding) == len(query_embedding)
        ]
        if not candidates:
            return []

        matrix = np.asarray([a.embedding for a in candidates], dtype=float)
        sims = cosine_similarities(matrix, np.asarray(query_embedding, dtype=float))
        order = np.argsort(-sims, kind="stable")[offset:offset + limit]

        results = []
        for idx in order:
            article = candidates[int(idx)]
            article.score = float(sims[idx])
            results.append(article)
        return results

    async def random_since(self, start: dt.datetime) -> Optional[Article]:
        stmt = select(ArticleRow).where(ArticleRow.date >= start).order_by(func.random()).limit(1)
        found = await self._read(stmt)
        return found[0] if found else None

    async def count(self) -> int:
        try:
            async with self._sessions() as session:
                return (await session.execute(select(func.count()).select_from(ArticleRow))).scalar_one()
        except SQLAlchemyError as e:
            logger.error("Article count failed: %s", e)
            return 0
