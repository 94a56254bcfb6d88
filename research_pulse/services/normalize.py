from __future__ import annotations

import datetime as dt
import html
import logging
import re
from typing import Callable, Iterable, Optional, Union

from bs4 import BeautifulSoup
from dateutil import parser as dtparser

from research_pulse.models import Article, Candidate, Source

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 200
MAX_SNIPPET_CHARS = 500
MAX_TAGS = 4

# "Dec 4, 2025" at the start of a scraped or community-feed title
DATE_PREFIX_RE = re.compile(r"^[A-Z][a-z]{2}\s+\d{1,2},\s+\d{4}")
MASHED_CAMEL_RE = re.compile(r"([a-z])([A-Z])")
FEATURED_PREFIX_RE = re.compile(r"^Featured(?=[A-Z\s]|$)")
WS_RE = re.compile(r"\s+")

ANTHROPIC_CATEGORIES = (
    "Societal Impacts",
    "Economic Research",
    "Interpretability",
    "Announcements",
    "Engineering",
    "Alignment",
    "Research",
    "Product",
    "Policy",
    "News",
)

def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def collapse_ws(text: str) -> str:
    return WS_RE.sub(" ", text).strip()

def strip_category_prefix(title: str, categories: Iterable[str] = ANTHROPIC_CATEGORIES) -> str:
    # Only strip a category glued to the next word ("PolicyIntroducing"),
    # never one followed by a space, which is likely a real title word
    for cat in categories:
        if title.startswith(cat) and len(title) > len(cat):
            nxt = title[len(cat)]
            if nxt.isupper():
                return title[len(cat):]
    return title

def unmash_camel_case(title: str) -> str:
    return MASHED_CAMEL_RE.sub(r"\1 \2", title)

def clean_anthropic_title(title: str) -> str:
    """Undo the concatenated DOM text of Anthropic listing cards.

    "Dec 4, 2025Societal ImpactsIntroducing Foo" -> "Introducing Foo"
    """
    cleaned = title.strip()
    previous = None
    while cleaned != previous:
        previous = cleaned
        cleaned = FEATURED_PREFIX_RE.sub("", cleaned).strip()
        cleaned = DATE_PREFIX_RE.sub("", cleaned).strip()
        cleaned = strip_category_prefix(cleaned).strip()
    return collapse_ws(unmash_camel_case(cleaned))

TITLE_CLEANERS: dict[Source, Callable[[str], str]] = {
    Source.ANTHROPIC: clean_anthropic_title,
}

# Link fragments that mark non-article pages for a source
EXCLUDED_LINK_PARTS: dict[Source, tuple[str, ...]] = {
    Source.ANTHROPIC: ("/team/",),
}

def clean_title(source: Source, title: str) -> str:
    cleaner = TITLE_CLEANERS.get(source)
    if cleaner:
        title = cleaner(title)
    return collapse_ws(title)[:MAX_TITLE_CHARS]

def clean_snippet(raw: Optional[str]) -> str:
    if not raw:
        return ""
    if "<" in raw:
        text = BeautifulSoup(raw, "lxml").get_text(" ")
    else:
        text = html.unescape(raw)
    return collapse_ws(text)[:MAX_SNIPPET_CHARS]

def parse_date(value: Union[dt.datetime, str, None]) -> Optional[dt.datetime]:
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            return None
        try:
            parsed = dtparser.parse(text)
        except (ValueError, OverflowError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)

def normalize_candidate(candidate: Candidate, now: Optional[dt.datetime] = None) -> Optional[Article]:
    link = (candidate.link or "").strip()
    if not link:
        return None
    if any(part in link for part in EXCLUDED_LINK_PARTS.get(candidate.source, ())):
        return None

    title = clean_title(candidate.source, candidate.title or "")
    if not title:
        return None

    date = parse_date(candidate.date)
    if date is None:
        date = now or utc_now()

    tags = [collapse_ws(t) for t in candidate.categories if t and t.strip()][:MAX_TAGS]

    return Article(
        link=link,
        title=title,
        date=date,
        source=candidate.source,
        snippet=clean_snippet(candidate.snippet),
        tags=tags or None,
    )

def normalize_candidates(candidates: Iterable[Candidate], now: Optional[dt.datetime] = None) -> list[Article]:
    now = now or utc_now()
    articles = []
    for c in candidates:
        article = normalize_candidate(c, now=now)
        if article is None:
            logger.debug("Dropped candidate from %s: %r", c.source.value, c.link)
            continue
        articles.append(article)
    return articles

def dedup_key(link: str) -> str:
    """Comparison key only: the stored link keeps its first-seen raw form."""
    base = link.split("?", 1)[0]
    if base.endswith("/"):
        base = base[:-1]
    return base

def deduplicate(articles: Iterable[Article]) -> list[Article]:
    seen: set[str] = set()
    unique = []
    for a in articles:
        key = dedup_key(a.link)
        if key in seen:
            continue
        seen.add(key)
        unique.append(a)
    return unique
