"""Command line entry point for ingestion and store maintenance."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
from typing import Any, Optional, Sequence

from research_pulse.core.config import get_settings
from research_pulse.core.logging import configure_logging
from research_pulse.core.state import AppState, build_state
from research_pulse.services.maintenance import clean_stored_titles, purge_malformed, purge_non_technical
from research_pulse.services.store import StoreError

logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="research-pulse", description="AI research news pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Fetch every source, store and enrich")
    ingest.add_argument("--refresh", action="store_true", help="Enrich the whole store, not just the recent window")

    enrich = sub.add_parser("enrich", help="Backfill missing tags and embeddings")
    enrich.add_argument("--all", dest="all_articles", action="store_true", help="Scan the whole store")

    filt = sub.add_parser("filter", help="Delete stored articles the content filter rejects")
    filt.add_argument("--dry-run", action="store_true")

    sub.add_parser("clean-titles", help="Re-apply per-source title cleanup to stored rows")
    sub.add_parser("purge-malformed", help="Delete rows missing a source or title")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser

async def _run(state: AppState, args: argparse.Namespace) -> Any:
    if args.command == "ingest":
        result = await state.ingestion.ingest_all(refresh=args.refresh)
        return {"count": result.count, "stats": dataclasses.asdict(result.stats)}
    if args.command == "enrich":
        return dataclasses.asdict(await state.enricher.enrich_missing(all_articles=args.all_articles))
    if args.command == "filter":
        return await purge_non_technical(state.store, state.content_filter, dry_run=args.dry_run)
    if args.command == "clean-titles":
        return await clean_stored_titles(state.store)
    if args.command == "purge-malformed":
        return await purge_malformed(state.store)
    raise ValueError(f"Unknown command {args.command}")

async def run_command(args: argparse.Namespace, state: Optional[AppState] = None) -> Any:
    state = state or build_state(get_settings())
    await state.open()
    try:
        return await _run(state, args)
    finally:
        await state.close()

def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("research_pulse.main:create_app", factory=True, host=args.host, port=args.port)
        return 0

    try:
        result = asyncio.run(run_command(args))
    except StoreError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    print(json.dumps(result, indent=2, default=str))
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
