import asyncio
from unittest import mock

import pytest

from research_pulse.core.scheduler import _parse_hhmm, build_scheduler, run_daily_job
from research_pulse.services.store import StoreError

class TestScheduler:
    def test_parse_hhmm(self) -> None:
        assert _parse_hhmm("02:00") == (2, 0)
        assert _parse_hhmm(" 23:45 ") == (23, 45)
        with pytest.raises(ValueError):
            _parse_hhmm("2am")

    def test_registers_single_daily_job(self) -> None:
        scheduler = build_scheduler(mock.Mock(), "02:30")
        (job,) = scheduler.get_jobs()
        assert job.id == "daily_ingest"
        assert job.max_instances == 1
        assert str(job.trigger.fields[5]) == "2"
        assert str(job.trigger.fields[6]) == "30"

    def test_daily_job_survives_store_failure(self) -> None:
        ingestion = mock.Mock()
        ingestion.ingest_all = mock.AsyncMock(side_effect=StoreError("locked"))

        asyncio.run(run_daily_job(ingestion))

        ingestion.ingest_all.assert_awaited_once()
