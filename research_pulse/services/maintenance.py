"""Out-of-band store cleanup, run from the admin API or the CLI."""
from __future__ import annotations

import dataclasses
import logging

from research_pulse.services.content_filter import ContentFilter
from research_pulse.services.normalize import clean_title
from research_pulse.services.store import ArticleStore

logger = logging.getLogger(__name__)

async def purge_non_technical(store: ArticleStore, content_filter: ContentFilter, dry_run: bool = False) -> dict:
    articles = await store.list_articles(limit=None)
    # Only an explicit classifier verdict deletes; unclassified articles always stay
    kept, unclassified = await content_filter.classify(articles)
    spared = {a.link for a in kept} | {a.link for a in unclassified}
    to_delete = [a.link for a in articles if a.link not in spared]
    logger.info(
        "Content purge: keeping %d, %d unclassified, deleting %d (dry_run=%s)",
        len(kept), len(unclassified), len(to_delete), dry_run,
    )
    deleted = 0
    if to_delete and not dry_run:
        deleted = await store.delete(to_delete)
    return {
        "scanned": len(articles),
        "kept": len(kept),
        "unclassified": len(unclassified),
        "to_delete": len(to_delete),
        "deleted": deleted,
        "dry_run": dry_run,
    }

async def clean_stored_titles(store: ArticleStore) -> dict:
    articles = await store.list_articles(limit=None)
    changed = []
    for a in articles:
        title = clean_title(a.source, a.title)
        if title and title != a.title:
            logger.info("Fixing title %r -> %r", a.title, title)
            changed.append(dataclasses.replace(a, title=title))
    if changed:
        await store.save(changed)
    return {"scanned": len(articles), "cleaned": len(changed)}

async def purge_malformed(store: ArticleStore) -> dict:
    deleted = await store.delete_malformed()
    logger.info("Deleted %d malformed rows", deleted)
    return {"deleted": deleted}
