from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

class Source(str, Enum):
    GOOGLE_RESEARCH = "Google Research"
    GOOGLE_DEEPMIND = "Google DeepMind"
    OPENAI = "OpenAI"
    ANTHROPIC = "Anthropic"
    MICROSOFT_RESEARCH = "Microsoft Research"
    META_AI = "Meta AI"
    XAI = "x.AI"

@dataclass
class Candidate:
    """Raw article as produced by one source adapter, before cleanup."""

    source: Source
    title: Optional[str]
    link: Optional[str]
    date: Union[dt.datetime, str, None] = None
    snippet: Optional[str] = None
    categories: list[str] = field(default_factory=list)

@dataclass
class Article:
    link: str
    title: str
    date: dt.datetime
    source: Source
    snippet: str = ""
    tags: Optional[list[str]] = None
    embedding: Optional[list[float]] = None
    # Only set on query results, never persisted
    score: Optional[float] = None

    @property
    def needs_tags(self) -> bool:
        return not self.tags

    @property
    def needs_embedding(self) -> bool:
        return not self.embedding

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "title": self.title,
            "link": self.link,
            "date": self.date.isoformat(),
            "source": self.source.value,
            "snippet": self.snippet,
            "tags": list(self.tags or []),
        }
        if self.score is not None:
            out["score"] = self.score
        if include_embedding:
            out["embedding"] = self.embedding
        return out
