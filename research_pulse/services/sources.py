from __future__ import annotations

from dataclasses import dataclass

from research_pulse.models import Source
from research_pulse.services.adapters import HtmlScrapeAdapter, RssAdapter, SourceAdapter
from research_pulse.services.extractors import get_strategy
from research_pulse.services.fetcher import Fetcher

COMMUNITY_FEEDS = "https://raw.githubusercontent.com/Olshansk/rss-feeds/main/feeds"

@dataclass(frozen=True)
class FeedSource:
    source: Source
    name: str
    # Mirrors, tried in order
    urls: tuple[str, ...]

@dataclass(frozen=True)
class ScrapePage:
    source: Source
    name: str
    url: str

RSS_FEEDS: list[FeedSource] = [
    FeedSource(Source.GOOGLE_RESEARCH, "Google Research", ("https://research.google/blog/rss/",)),
    FeedSource(
        Source.GOOGLE_DEEPMIND,
        "Google DeepMind",
        ("https://deepmind.google/blog/rss.xml", "https://deepmind.com/blog/feed/basic"),
    ),
    FeedSource(Source.OPENAI, "OpenAI", ("https://openai.com/news/rss.xml",)),
    FeedSource(
        Source.MICROSOFT_RESEARCH,
        "Microsoft Research",
        (
            "https://www.microsoft.com/en-us/research/feed/",
            "https://blogs.technet.microsoft.com/machinelearning/feed",
        ),
    ),
    FeedSource(Source.XAI, "x.AI news", (f"{COMMUNITY_FEEDS}/feed_xainews.xml",)),
    FeedSource(Source.ANTHROPIC, "Anthropic engineering", (f"{COMMUNITY_FEEDS}/feed_anthropic_engineering.xml",)),
    FeedSource(Source.ANTHROPIC, "Anthropic research", (f"{COMMUNITY_FEEDS}/feed_anthropic_research.xml",)),
    FeedSource(Source.ANTHROPIC, "Anthropic red team", (f"{COMMUNITY_FEEDS}/feed_anthropic_red.xml",)),
    FeedSource(
        Source.META_AI,
        "Meta AI",
        ("https://ai.meta.com/blog/rss.xml", "https://ai.meta.com/blog/rss/", "https://research.facebook.com/feed/"),
    ),
]

SCRAPE_PAGES: list[ScrapePage] = [
    ScrapePage(Source.ANTHROPIC, "Anthropic research page", "https://www.anthropic.com/research"),
    ScrapePage(Source.ANTHROPIC, "Anthropic engineering page", "https://www.anthropic.com/engineering"),
    ScrapePage(Source.ANTHROPIC, "Anthropic news page", "https://www.anthropic.com/news"),
    ScrapePage(Source.META_AI, "Meta AI blog page", "https://ai.meta.com/blog/"),
]

def build_adapters(
    fetcher: Fetcher,
    max_items_per_feed: int = 50,
    scrape_enabled: bool = True,
    scrape_max_items: int = 10,
) -> list[SourceAdapter]:
    adapters: list[SourceAdapter] = [
        RssAdapter(fetcher, feed.source, feed.urls, max_items=max_items_per_feed, name=feed.name)
        for feed in RSS_FEEDS
    ]
    if scrape_enabled:
        adapters.extend(
            HtmlScrapeAdapter(fetcher, page.url, get_strategy(page.source), max_items=scrape_max_items, name=page.name)
            for page in SCRAPE_PAGES
        )
    return adapters
