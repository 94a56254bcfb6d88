from __future__ import annotations

import dataclasses

from fastapi import APIRouter, Depends, Query

from research_pulse.api.deps import get_state, run_ingestion
from research_pulse.core.security import require_admin
from research_pulse.core.state import AppState
from research_pulse.services.maintenance import clean_stored_titles, purge_malformed, purge_non_technical

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

@router.post("/ingest")
async def admin_ingest(
    refresh: bool = Query(default=False),
    state: AppState = Depends(get_state),
):
    result = await run_ingestion(state, refresh=refresh)
    return {
        "success": True,
        "count": result.count,
        "message": f"Ingested {result.count} articles.",
        "stats": dataclasses.asdict(result.stats),
    }

@router.post("/enrich")
async def admin_enrich(
    all_articles: bool = Query(default=False, alias="all"),
    state: AppState = Depends(get_state),
):
    stats = await state.enricher.enrich_missing(all_articles=all_articles)
    return dataclasses.asdict(stats)

@router.post("/filter")
async def admin_filter(
    dry_run: bool = Query(default=True, alias="dryRun"),
    state: AppState = Depends(get_state),
):
    return await purge_non_technical(state.store, state.content_filter, dry_run=dry_run)

@router.post("/clean-titles")
async def admin_clean_titles(state: AppState = Depends(get_state)):
    return await clean_stored_titles(state.store)

@router.post("/purge-malformed")
async def admin_purge_malformed(state: AppState = Depends(get_state)):
    return await purge_malformed(state.store)

@router.get("/stats")
async def admin_stats(state: AppState = Depends(get_state)):
    return {"articles": await state.store.count()}
