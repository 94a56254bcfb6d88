from __future__ import annotations

import logging
import math
from typing import Sequence

from research_pulse.models import Article
from research_pulse.services.llm import ModelError

logger = logging.getLogger(__name__)

class Reranker:
    """Reorders retrieved articles with the semantic ranking model.

    Any failure returns the input order untouched.
    """

    def __init__(self, models):
        self._models = models

    async def rerank(self, query: str, articles: Sequence[Article]) -> list[Article]:
        if not articles:
            return []
        records = [
            {"id": a.link, "title": a.title, "content": a.snippet or a.title}
            for a in articles
        ]
        try:
            ranked = await self._models.rank(query, records)
        except ModelError as e:
            logger.error("Rerank failed, keeping vector order: %s", e)
            return list(articles)

        scores: dict[str, float] = {}
        for rec in ranked:
            if isinstance(rec, dict) and rec.get("id") and rec.get("score") is not None:
                try:
                    scores[rec["id"]] = float(rec["score"])
                except (TypeError, ValueError):
                    continue
        if not scores:
            logger.warning("Rerank returned no scores, keeping vector order")
            return list(articles)

        # Articles missing from the response sink to the bottom, stable otherwise
        for a in articles:
            if a.link in scores:
                a.score = scores[a.link]
        return sorted(articles, key=lambda a: scores.get(a.link, -math.inf), reverse=True)
