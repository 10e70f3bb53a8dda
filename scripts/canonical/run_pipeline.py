"""
Urban-renewal opportunity pipeline: command-line entry point.

  discover  research new complexes in localities (default: today's rotation)
  track     poll planning committees for stale complexes
  enrich    enrich complexes in one batch job and wait for it
  rescore   recompute all scores
  rank      print the ranked opportunity surface
  daily     discover -> track -> enrich hot tier -> rescore
  serve     run the HTTP API (resumes interrupted enrichment jobs on start)

Usage:
  python scripts/canonical/run_pipeline.py discover
  python scripts/canonical/run_pipeline.py discover --region "גוש דן"
  python scripts/canonical/run_pipeline.py track --limit 20
  python scripts/canonical/run_pipeline.py enrich --ids 4 8 15 --mode full
  python scripts/canonical/run_pipeline.py enrich --tier hot --stale-days 5
  python scripts/canonical/run_pipeline.py rank --tier hot --limit 20
  python scripts/canonical/run_pipeline.py serve --port 8000

All runs are idempotent: discovery never re-inserts known complexes, committee
approvals are recorded once per level, and re-scoring is a pure recomputation.
"""
import sys
import os
sys.path.append(os.getcwd())

import asyncio
import argparse
import json
import logging
from datetime import date

from src.core.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("renewal.pipeline")


def _localities(args):
    from src.discovery.localities import localities_for_day, localities_for_region

    if args.localities:
        return args.localities
    if args.region:
        return localities_for_region(args.region)
    return localities_for_day(date.today().timetuple().tm_yday, settings.localities_per_run)


async def run_discover(pipeline, args):
    return await pipeline.discovery.discover(_localities(args))


async def run_track(pipeline, args):
    return await pipeline.committee.track_all(
        city=args.city, limit=args.limit, stale_only=not args.all,
    )


async def run_enrich(pipeline, args):
    from src.enrichment.orchestrator import BatchSelection

    selection = BatchSelection(
        complex_ids=args.ids,
        stale_days=args.stale_days,
        min_attractiveness=args.min_attractiveness,
        city=args.city,
        tier=args.tier,
        limit=args.limit,
    )
    job_id = await pipeline.orchestrator.start_batch(selection, args.mode)
    job = await pipeline.orchestrator.wait(job_id)
    job.pop("details", None)
    return job


async def run_rescore(pipeline, args):
    return await pipeline.scoring.rescore_all(city=args.city)


async def run_rank(pipeline, args):
    return await pipeline.scoring.rank_opportunities(limit=args.limit or 50, tier=args.tier, city=args.city)


async def run_daily(pipeline, args):
    from src.core.models import EnrichmentMode, ScoreTier
    from src.enrichment.orchestrator import BatchSelection

    summary = {}
    summary["discovery"] = await pipeline.discovery.discover(_localities(args))
    summary["committee"] = await pipeline.committee.track_all(stale_only=True)

    selection = BatchSelection(tier=ScoreTier.HOT.value, stale_days=settings.enrichment_stale_days)
    job_id = await pipeline.orchestrator.start_batch(selection, EnrichmentMode.STANDARD)
    summary["enrichment"] = await pipeline.orchestrator.wait(job_id)
    summary["scoring"] = await pipeline.scoring.rescore_all()

    for section in ("discovery", "committee", "enrichment"):
        summary[section].pop("details", None)
    return summary


def serve(args):
    import uvicorn

    uvicorn.run("src.web.app:app", host=args.host, port=args.port, log_level=settings.log_level.lower())


COMMANDS = {
    "discover": run_discover,
    "track": run_track,
    "enrich": run_enrich,
    "rescore": run_rescore,
    "rank": run_rank,
    "daily": run_daily,
}


async def run(args):
    from src.workflow import build_pipeline

    pipeline = build_pipeline(settings)
    # Single-complex jobs started by discovery run on this loop; wait for them before exit
    result = await COMMANDS[args.command](pipeline, args)
    for job in await pipeline.orchestrator.list_jobs():
        if job["status"] in ("queued", "running"):
            await pipeline.orchestrator.wait(job["job_id"])
    return result


def main():
    parser = argparse.ArgumentParser(
        description="Urban-renewal opportunity pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    discover = sub.add_parser("discover", help="Discover new complexes")
    discover.add_argument("--localities", nargs="+", default=None, help="Localities to scan")
    discover.add_argument("--region", default=None, help="Scan every locality of a target region")

    track = sub.add_parser("track", help="Poll committee decisions")
    track.add_argument("--city", default=None)
    track.add_argument("--limit", type=int, default=None)
    track.add_argument("--all", action="store_true", help="Include recently checked complexes")

    enrich = sub.add_parser("enrich", help="Run one enrichment batch and wait for it")
    enrich.add_argument("--ids", nargs="+", type=int, default=None, help="Explicit complex ids, in order")
    enrich.add_argument("--mode", choices=["fast", "standard", "full"], default="standard")
    enrich.add_argument("--stale-days", type=int, default=None)
    enrich.add_argument("--min-attractiveness", type=int, default=None)
    enrich.add_argument("--city", default=None)
    enrich.add_argument("--tier", choices=["hot", "active", "dormant"], default=None)
    enrich.add_argument("--limit", type=int, default=None)

    rescore = sub.add_parser("rescore", help="Recompute all scores")
    rescore.add_argument("--city", default=None)

    rank = sub.add_parser("rank", help="Print ranked opportunities")
    rank.add_argument("--tier", choices=["hot", "active", "dormant"], default=None)
    rank.add_argument("--city", default=None)
    rank.add_argument("--limit", type=int, default=50)

    daily = sub.add_parser("daily", help="Full daily cycle")
    daily.add_argument("--localities", nargs="+", default=None)
    daily.add_argument("--region", default=None)

    serve_cmd = sub.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    if args.command == "serve":
        serve(args)
        return
    result = asyncio.run(run(args))
    print(json.dumps(result, ensure_ascii=False, indent=2, default=str))


if __name__ == "__main__":
    main()
