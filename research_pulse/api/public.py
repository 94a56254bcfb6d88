from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from research_pulse.api.deps import get_state, run_ingestion
from research_pulse.core.state import AppState
from research_pulse.services.query import SearchMode, TimeRange

router = APIRouter(tags=["public"])

@router.get("/news")
async def list_news(
    q: Optional[str] = Query(default=None, max_length=500),
    refresh: bool = Query(default=False),
    time_range: TimeRange = Query(default="2w", alias="timeRange"),
    page: int = Query(default=1, ge=1, le=1000),
    mode: SearchMode = Query(default="semantic"),
    state: AppState = Depends(get_state),
):
    if refresh:
        await run_ingestion(state)
    result = await state.query.search(q=q, time_range=time_range, page=page, mode=mode)
    return {
        "articles": [a.to_dict() for a in result.articles],
        "hasMore": result.has_more,
    }

@router.get("/news/lucky")
async def lucky(state: AppState = Depends(get_state)):
    article = await state.query.lucky(window_days=state.settings.lucky_window_days)
    if not article:
        raise HTTPException(status_code=404, detail="No recent articles")
    return RedirectResponse(article.link, status_code=307)

@router.get("/news/weekly")
async def weekly(
    weeks: int = Query(default=2, ge=1, le=52),
    state: AppState = Depends(get_state),
):
    start, end, articles = await state.query.recent_window(weeks=weeks)
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "articles": [a.to_dict() for a in articles],
    }
