from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from research_pulse.api.admin import router as admin_router
from research_pulse.api.public import router as public_router
from research_pulse.core.config import Settings, get_settings
from research_pulse.core.logging import configure_logging
from research_pulse.core.scheduler import build_scheduler, shutdown_scheduler
from research_pulse.core.state import AppState, build_state
from research_pulse.services.store import StoreError

logger = logging.getLogger(__name__)

def create_app(settings: Optional[Settings] = None, state: Optional[AppState] = None) -> FastAPI:
    if settings is None:
        settings = state.settings if state is not None else get_settings()
    if state is None:
        state = build_state(settings)

    app = FastAPI(title="Research Pulse API", version="1.0.0")

    # Read-only public API consumed by the frontend, keep CORS permissive
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(public_router)
    app.include_router(admin_router)

    app.state.pulse = state
    app.state.scheduler = None

    @app.on_event("startup")
    async def on_startup():
        configure_logging(settings.log_level)
        await state.open()
        if settings.admin_token is None:
            logger.warning("ADMIN_TOKEN not set: admin routes are unauthenticated")
        if settings.schedule_enabled:
            app.state.scheduler = build_scheduler(state.ingestion, settings.fetch_at_utc)
            app.state.scheduler.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.scheduler is not None:
            shutdown_scheduler(app.state.scheduler)
        await state.close()

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Request %s %s failed on store write: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal Server Error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app
