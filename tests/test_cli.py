import asyncio
import json
from unittest import mock

import pytest

from conftest import FakeAdapter, FakeModels, candidate, make_article, seed

from research_pulse import cli
from research_pulse.core.config import Settings
from research_pulse.core.state import build_state
from research_pulse.services.store import StoreError

def make_state(db_path, adapters=()):
    settings = Settings(db_path=db_path, enrich_batch_delay_seconds=0)
    return build_state(settings, models=FakeModels(json_handler=lambda _: ["LLM"], dims=3), adapters=list(adapters))

class TestParser:
    def test_subcommands(self) -> None:
        parser = cli.build_parser()
        assert parser.parse_args(["ingest", "--refresh"]).refresh is True
        assert parser.parse_args(["enrich", "--all"]).all_articles is True
        assert parser.parse_args(["filter", "--dry-run"]).dry_run is True
        assert parser.parse_args(["serve", "--port", "9000"]).port == 9000

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

class TestRunCommand:
    def test_ingest(self, db_path) -> None:
        state = make_state(db_path, [FakeAdapter([candidate("https://openai.com/index/a")])])
        args = cli.build_parser().parse_args(["ingest"])

        result = asyncio.run(cli.run_command(args, state=state))

        assert result["count"] == 1
        assert result["stats"]["saved"] == 1

    def test_enrich_all(self, db_path) -> None:
        asyncio.run(seed(db_path, [make_article("https://x/a"), make_article("https://x/b")]))
        args = cli.build_parser().parse_args(["enrich", "--all"])

        result = asyncio.run(cli.run_command(args, state=make_state(db_path)))

        assert result["scanned"] == 2
        assert result["updated"] == 2

    def test_purge_malformed(self, db_path) -> None:
        args = cli.build_parser().parse_args(["purge-malformed"])
        assert asyncio.run(cli.run_command(args, state=make_state(db_path))) == {"deleted": 0}

class TestMain:
    def test_prints_json_result(self, capsys) -> None:
        with mock.patch.object(cli, "run_command", new=mock.AsyncMock(return_value={"deleted": 3})):
            assert cli.main(["purge-malformed"]) == 0
        assert json.loads(capsys.readouterr().out) == {"deleted": 3}

    def test_store_failure_exits_nonzero(self) -> None:
        with mock.patch.object(cli, "run_command", new=mock.AsyncMock(side_effect=StoreError("locked"))):
            assert cli.main(["ingest"]) == 1

    def test_serve_runs_uvicorn(self) -> None:
        with mock.patch("uvicorn.run") as run:
            assert cli.main(["serve", "--port", "9000"]) == 0
        run.assert_called_once_with("research_pulse.main:create_app", factory=True, host="127.0.0.1", port=9000)
