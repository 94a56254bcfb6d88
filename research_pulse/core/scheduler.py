from __future__ import annotations

import datetime as dt
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from research_pulse.services.ingest import IngestionService
from research_pulse.services.store import StoreError

logger = logging.getLogger(__name__)

def _parse_hhmm(s: str) -> tuple[int, int]:
    parts = s.strip().split(":")
    if len(parts) != 2:
        raise ValueError("FETCH_AT_UTC must be HH:MM")
    return int(parts[0]), int(parts[1])

async def run_daily_job(ingestion: IngestionService) -> None:
    try:
        result = await ingestion.ingest_all()
    except StoreError as e:
        logger.error("Scheduled ingestion failed to persist: %s", e)
        return
    logger.info("Scheduled ingestion stored %d articles", result.count)

def build_scheduler(ingestion: IngestionService, fetch_at_utc: str) -> AsyncIOScheduler:
    hour, minute = _parse_hhmm(fetch_at_utc)
    scheduler = AsyncIOScheduler(timezone=dt.timezone.utc)
    scheduler.add_job(
        run_daily_job,
        CronTrigger(hour=hour, minute=minute, timezone=dt.timezone.utc),
        args=[ingestion],
        id="daily_ingest",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return scheduler

def shutdown_scheduler(scheduler: AsyncIOScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
