"""
Command-line entry point.

  krl-analyze scrape  [--station THB] [--from 00:00] [--to 23:00] [--out DIR]
  krl-analyze analyze --dir DIR
  krl-analyze audit   --dir DIR
  krl-analyze compare --a DIR_A --b DIR_B --start STATION
  krl-analyze through (--a DIR_A --b DIR_B | --pre DIR_PRE --post DIR_POST)
                      --via STATION --to STATION [--hub STATION]
                      [--order depart|wait] [--desc] [--maxwait MIN] [--limit N]
  krl-analyze serve

Exit status: 0 on success, 1 when a dataset is missing or a fetch fails,
2 on invalid arguments.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from config import (
    API_HOST,
    API_PORT,
    DATA_DIR,
    DEFAULT_STATION,
    DEFAULT_TIME_FROM,
    DEFAULT_TIME_TO,
    HUB_STATION,
    OUT_DIR,
)
from analysis import service
from analysis.errors import ConfigError, DataNotFound
from routing.transfer import ORDER_KEYS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="krl-analyze", description="Commuter-rail schedule analysis")
    sub = p.add_subparsers(dest="command", required=True)

    scrape = sub.add_parser("scrape", help="Fetch a station's schedule window into CSV files")
    scrape.add_argument("--station", default=DEFAULT_STATION, help="Station id (e.g. THB)")
    scrape.add_argument("--from", dest="time_from", default=DEFAULT_TIME_FROM, help="HH:MM")
    scrape.add_argument("--to", dest="time_to", default=DEFAULT_TIME_TO, help="HH:MM")
    scrape.add_argument("--out", type=Path, default=DATA_DIR, help="Parent directory for the dataset")

    analyze = sub.add_parser("analyze", help="Legs by train and segment statistics")
    analyze.add_argument("--dir", type=Path, required=True)

    audit = sub.add_parser("audit", help="Data quality audit")
    audit.add_argument("--dir", type=Path, required=True)

    compare = sub.add_parser("compare", help="Compare leg durations of two datasets")
    compare.add_argument("--a", type=Path, required=True)
    compare.add_argument("--b", type=Path, required=True)
    compare.add_argument("--start", default="", help="Start station (exact name)")

    through = sub.add_parser("through", help="Through trains, or transfers at the hub")
    through.add_argument("--a", type=Path)
    through.add_argument("--b", type=Path)
    through.add_argument("--pre", type=Path, help="Dataset for via → hub")
    through.add_argument("--post", type=Path, help="Dataset for hub → destination")
    through.add_argument("--via", required=True)
    through.add_argument("--to", dest="dest", required=True)
    through.add_argument("--hub", default=HUB_STATION)
    through.add_argument("--order", default="depart", help=f"One of: {', '.join(ORDER_KEYS)}")
    through.add_argument("--desc", action="store_true")
    through.add_argument("--maxwait", type=float, default=None, help="Max wait at the hub (minutes)")
    through.add_argument("--limit", type=int, default=0, help="0 = no limit")

    for cmd in (analyze, audit, compare, through):
        cmd.add_argument("--out", type=Path, default=OUT_DIR, help="Parent directory for result files")

    sub.add_parser("serve", help="Run the HTTP API")
    return p


def _print_plan(plan: service.ConnectionPlan, max_wait: float | None) -> None:
    if plan.kind == "through":
        print(f"Through trains {plan.via} → {plan.hub} → {plan.dest}:")
        for r in plan.through:
            name = " - ".join(x for x in (r.ka_name, r.route_name) if x)
            print(f"- {r.depart_via_time or '??:??'} | {r.train_id}{' | ' + name if name else ''}")
        return
    if plan.kind == "none":
        print(f"No through train and no transfer found for {plan.via} → {plan.hub} → {plan.dest}.")
        return
    window = f" (<= {max_wait:g} min)" if max_wait is not None else ""
    print(f"No through train. Transfers at {plan.hub}{window}:")
    for p in plan.transfers:
        from_name = " - ".join(x for x in (p.from_ka_name, p.from_route_name) if x)
        to_name = " - ".join(x for x in (p.to_ka_name, p.to_route_name) if x)
        print(
            f"- {plan.via} {p.depart_via_time} [{p.from_train_id}{' | ' + from_name if from_name else ''}]"
            f" → {plan.hub} {p.arrive_hub_time} | change | {plan.hub} {p.depart_hub_time}"
            f" [{p.to_train_id}{' | ' + to_name if to_name else ''}]"
            f" → {plan.dest} {p.arrive_dest_time or '??:??'} | wait ~{p.wait_min:g}m"
        )


def run(args: argparse.Namespace) -> int:
    if args.command == "serve":
        import uvicorn
        uvicorn.run("api.main:app", host=API_HOST, port=API_PORT)
        return 0

    if args.command == "scrape":
        from ingestion.krl_api import KrlApiClient
        from ingestion.scrape import scrape_station

        async def _scrape() -> None:
            async with KrlApiClient() as api:
                result = await scrape_station(api, args.station, args.time_from, args.time_to, args.out)
            print(f"Done. CSV files in: {result.out_dir.resolve()}")

        try:
            asyncio.run(_scrape())
        except (ValueError, httpx.HTTPError) as exc:
            logger.error("Scrape aborted: %s", exc)
            return 1
        return 0

    if args.command == "analyze":
        result = service.analyze_dataset(args.dir)
        written = service.write_analysis(service.new_run_dir(args.out), result)
    elif args.command == "audit":
        report = service.audit_dataset(args.dir)
        written = service.write_audit(service.new_run_dir(args.out), args.dir, report)
        s = report.summary
        print(
            f"Total legs: {s.total_legs} | null: {s.null_legs} | negative: {s.negative_legs}"
            f" | >60m: {s.over60min_legs} | outliers: {s.outlier_count}"
        )
    elif args.command == "compare":
        series = service.compare_dirs(args.a, args.b, args.start)
        written = service.write_compare(service.new_run_dir(args.out), args.start, series)
    else:
        pre, post = service.resolve_pair(args.a, args.b, args.pre, args.post)
        plan = service.plan_connections(
            pre, post, args.via, args.dest,
            hub=args.hub,
            max_wait=args.maxwait,
            order=args.order.lower(),
            descending=args.desc,
            limit=args.limit,
        )
        _print_plan(plan, args.maxwait)
        written = service.write_plan(service.new_run_dir(args.out), plan)

    print("Output:")
    for path in written:
        print(f"- {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2
    except DataNotFound as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
