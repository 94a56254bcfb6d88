from __future__ import annotations

import logging
from typing import Any, Literal, Optional, Sequence

from research_pulse.models import Article
from research_pulse.services.llm import ModelError

logger = logging.getLogger(__name__)

BatchErrorPolicy = Literal["drop", "keep"]

FILTER_PROMPT = """You are an editor for a technical AI research newsletter.
Your job is to filter out articles that are NOT technical AI research.

Exclude:
- Business news (earnings, stock, acquisitions, partnerships)
- Management changes (new CEO, CFO, etc.)
- Policy/Regulation (unless it has significant technical depth)
- Marketing/Product announcements without technical details
- General "AI is the future" commentary

Include:
- New model releases (technical details)
- Research papers
- Technical deep dives
- Engineering blog posts
- Safety research (technical alignment, interpretability)

Input Articles:
{articles}

Return a JSON object with a list of INDICES (from the input list) of articles that SHOULD BE KEPT.
Format: {{"keep_indices": [0, 2, 5]}}"""

def build_prompt(batch: Sequence[Article]) -> str:
    lines = [f"[{idx}] Title: {a.title}\nSnippet: {a.snippet}" for idx, a in enumerate(batch)]
    return FILTER_PROMPT.format(articles="\n\n".join(lines))

def parse_keep_indices(payload: Any, batch_len: int) -> list[int]:
    if not isinstance(payload, dict) or not isinstance(payload.get("keep_indices"), list):
        raise ModelError(f"missing keep_indices in classifier response: {payload!r}")
    keep = set()
    for idx in payload["keep_indices"]:
        if isinstance(idx, bool) or not isinstance(idx, int):
            continue
        if 0 <= idx < batch_len:
            keep.add(idx)
    return sorted(keep)

class ContentFilter:
    """Keeps technical research posts, drops business and marketing noise.

    on_batch_error decides what a failed batch contributes: "drop" keeps
    none of it, "keep" passes the whole batch through unfiltered.
    classify() reports failed batches separately and never applies a policy.
    """

    def __init__(self, models, batch_size: int = 20, on_batch_error: BatchErrorPolicy = "drop"):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if on_batch_error not in ("drop", "keep"):
            raise ValueError(f"unknown batch error policy {on_batch_error!r}")
        self._models = models
        self.batch_size = batch_size
        self.on_batch_error = on_batch_error

    async def _classify_batch(self, batch: list[Article], start: int) -> Optional[list[int]]:
        """Kept indices for one batch, None when the batch could not be classified."""
        try:
            payload = await self._models.generate_json(build_prompt(batch))
            return parse_keep_indices(payload, len(batch))
        except ModelError as e:
            logger.error("Content filter failed for batch %d-%d: %s", start, start + len(batch) - 1, e)
            return None

    async def classify(self, articles: Sequence[Article]) -> tuple[list[Article], list[Article]]:
        """Return (kept, unclassified); articles of failed batches are never judged."""
        kept: list[Article] = []
        unclassified: list[Article] = []
        for start in range(0, len(articles), self.batch_size):
            batch = list(articles[start:start + self.batch_size])
            indices = await self._classify_batch(batch, start)
            if indices is None:
                unclassified.extend(batch)
                continue
            kept.extend(batch[i] for i in indices)
        return kept, unclassified

    async def filter(self, articles: Sequence[Article]) -> list[Article]:
        kept: list[Article] = []
        failed = 0
        for start in range(0, len(articles), self.batch_size):
            batch = list(articles[start:start + self.batch_size])
            indices = await self._classify_batch(batch, start)
            if indices is None:
                failed += len(batch)
                if self.on_batch_error == "keep":
                    kept.extend(batch)
                continue
            kept.extend(batch[i] for i in indices)
        logger.info(
            "Content filter kept %d of %d articles (%d unclassified, %s policy)",
            len(kept), len(articles), failed, self.on_batch_error,
        )
        return kept
