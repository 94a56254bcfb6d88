"""Source-keyed extraction strategies for scraped listing pages.

Every rule here is a best-effort heuristic over markup we do not control.
A link whose anchor does not have a recognizable shape is skipped, never
raised on, so one source changing its layout only empties that source.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from research_pulse.models import Candidate, Source
from research_pulse.services.normalize import clean_title, collapse_ws, dedup_key

DATE_TEXT_RE = re.compile(r"[A-Z][a-z]{2}\s\d{1,2},\s\d{4}")
HEADING_TAGS = ["h1", "h2", "h3", "h4"]

class ExtractionStrategy:
    source: Source
    base_url: str
    link_prefixes: tuple[str, ...] = ()
    # Listing, index and archive pages living under the same prefixes
    excluded_paths: tuple[str, ...] = ()
    excluded_prefixes: tuple[str, ...] = ()
    # Separator used when joining anchor text nodes
    text_separator: str = " "
    min_raw_chars: int = 15
    default_snippet: str = ""

    def is_article_path(self, path: str) -> bool:
        trimmed = path.rstrip("/") or "/"
        if trimmed in self.excluded_paths:
            return False
        if any(path.startswith(p) for p in self.excluded_prefixes):
            return False
        return any(path.startswith(p) and len(trimmed) > len(p.rstrip("/")) for p in self.link_prefixes)

    def resolve(self, href: str) -> Optional[str]:
        link = urljoin(self.base_url, href.strip())
        parts = urlsplit(link)
        if parts.scheme not in ("http", "https"):
            return None
        if parts.netloc != urlsplit(self.base_url).netloc:
            return None
        return link

    def find_date(self, anchor: Tag, raw_text: str) -> tuple[Optional[str], bool]:
        """Return (date text, found inside the anchor text)."""
        m = DATE_TEXT_RE.search(raw_text)
        if m:
            return m.group(0), True
        for scope in (anchor, anchor.parent):
            if scope is None:
                continue
            time_el = scope.find("time")
            if time_el is not None:
                value = time_el.get("datetime") or time_el.get_text(" ", strip=True)
                if value:
                    return value, False
        if anchor.parent is not None:
            m = DATE_TEXT_RE.search(anchor.parent.get_text(" "))
            if m:
                return m.group(0), False
        return None, False

    def raw_title(self, anchor: Tag) -> str:
        heading = anchor.find(HEADING_TAGS)
        if heading is not None:
            return heading.get_text(" ", strip=True)
        return anchor.get_text(self.text_separator, strip=True)

    def parse_anchor(self, anchor: Tag, link: str) -> Optional[Candidate]:
        raw = self.raw_title(anchor)
        if len(collapse_ws(raw)) <= self.min_raw_chars:
            return None

        date_text, in_anchor = self.find_date(anchor, raw)
        if date_text and in_anchor:
            raw = raw.replace(date_text, " ", 1)

        title = clean_title(self.source, raw)
        if not title:
            return None

        return Candidate(
            source=self.source,
            title=title,
            link=link,
            date=date_text,
            snippet=self.default_snippet,
        )

    def extract(self, html: str) -> list[Candidate]:
        soup = BeautifulSoup(html, "lxml")
        seen: set[str] = set()
        out: list[Candidate] = []
        for anchor in soup.find_all("a", href=True):
            link = self.resolve(anchor["href"])
            if link is None or not self.is_article_path(urlsplit(link).path):
                continue
            key = dedup_key(link)
            if key in seen:
                continue
            candidate = self.parse_anchor(anchor, link)
            if candidate is None:
                continue
            seen.add(key)
            out.append(candidate)
        return out

class AnthropicStrategy(ExtractionStrategy):
    source = Source.ANTHROPIC
    base_url = "https://www.anthropic.com"
    link_prefixes = ("/research/", "/engineering/", "/news/")
    excluded_paths = ("/research", "/engineering", "/news", "/company", "/careers")
    excluded_prefixes = ("/research/team", "/news/page/", "/news/archive")
    # Cards put date, category and title in adjacent nodes without spaces;
    # keep them concatenated so the title cleanup can split them apart
    text_separator = ""
    default_snippet = "Anthropic Research & Engineering"

class MetaBlogStrategy(ExtractionStrategy):
    source = Source.META_AI
    base_url = "https://ai.meta.com"
    link_prefixes = ("/blog/",)
    excluded_paths = ("/blog",)
    excluded_prefixes = ("/blog/page/", "/blog/category/")
    min_raw_chars = 10
    default_snippet = "Meta AI Blog"

STRATEGIES: dict[Source, ExtractionStrategy] = {
    Source.ANTHROPIC: AnthropicStrategy(),
    Source.META_AI: MetaBlogStrategy(),
}

def get_strategy(source: Source) -> ExtractionStrategy:
    if source not in STRATEGIES:
        raise ValueError(f"No extraction strategy for {source.value}. Known: {[s.value for s in STRATEGIES]}")
    return STRATEGIES[source]
