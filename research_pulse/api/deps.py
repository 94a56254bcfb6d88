from __future__ import annotations

import asyncio

from fastapi import HTTPException, Request

from research_pulse.core.state import AppState
from research_pulse.services.ingest import IngestResult

def get_state(request: Request) -> AppState:
    return request.app.state.pulse

async def run_ingestion(state: AppState, refresh: bool = False) -> IngestResult:
    # Fan-out plus enrichment can take minutes; cap it generously
    try:
        return await asyncio.wait_for(
            state.ingestion.ingest_all(refresh=refresh),
            timeout=state.settings.ingest_timeout_seconds,
        )
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Ingestion timed out")
