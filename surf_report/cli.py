"""Command line entry point for scheduled runs.

Examples::

    surf-report generate --location folly-beach
    surf-report generate --policy degrade --max-attempts 5 --delay 30
    surf-report refresh
    surf-report prune
"""

from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import signal
from typing import Any, Sequence

import httpx

from surf_report.core.cancel import CancelToken
from surf_report.core.clock import local_today
from surf_report.core.config import settings
from surf_report.core.errors import SurfReportError
from surf_report.core.logging_config import setup_logging
from surf_report.core.spots import get_spot
from surf_report.db.session import get_session, init_db
from surf_report.services.buoy import BuoyService
from surf_report.services.measurement_refresh import refresh_measurements
from surf_report.services.orchestrator import build_orchestrator
from surf_report.services.rating import get_rating_strategy
from surf_report.services.retention import prune_old_rows

logger = logging.getLogger(__name__)


def _date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="surf-report", description="Daily surf report pipeline.")
    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Build and store the report for a spot.")
    generate.add_argument("--location", default=None, help="Spot id (default: settings.default_location).")
    generate.add_argument("--date", type=_date, default=None, help="Report date (default: local today).")
    generate.add_argument("--policy", choices=["fail", "degrade"], default=None, help="Exhaustion policy.")
    generate.add_argument("--max-attempts", type=int, default=None)
    generate.add_argument("--delay", type=float, default=None, help="Seconds between attempts.")
    generate.add_argument("--deadline", type=float, default=None, help="Abort the run after this many seconds.")

    refresh = sub.add_parser("refresh", help="Update today's report with the newest buoy values.")
    refresh.add_argument("--location", default=None)
    refresh.add_argument("--date", type=_date, default=None)

    prune = sub.add_parser("prune", help="Delete rows past the retention window.")
    prune.add_argument("--days", type=int, default=None, help="Override retention_days.")

    sub.add_parser("init-db", help="Create database tables.")
    return parser.parse_args(argv)


def _generate(args: argparse.Namespace) -> dict[str, Any]:
    spot = get_spot(args.location)
    cancel = CancelToken(args.deadline if args.deadline is not None else settings.run_deadline_seconds)
    previous = signal.signal(signal.SIGTERM, lambda *_: cancel.cancel())
    try:
        with get_session() as session, httpx.Client() as client:
            orchestrator = build_orchestrator(
                session,
                client,
                max_attempts=args.max_attempts,
                delay_seconds=args.delay,
                exhaustion=args.policy,
                cancel=cancel,
            )
            return orchestrator.run(spot, args.date).to_response()
    finally:
        signal.signal(signal.SIGTERM, previous)


def _refresh(args: argparse.Namespace) -> dict[str, Any]:
    spot = get_spot(args.location)
    report_date = args.date or local_today(spot.timezone)
    with get_session() as session, httpx.Client() as client:
        report = refresh_measurements(
            session,
            spot,
            report_date,
            get_rating_strategy(settings.rating_strategy),
            sensor=BuoyService(session, client=client),
        )
        return {"success": True, "date": report.date.isoformat(), "location": report.location, "rating": report.rating}


def _prune(args: argparse.Namespace) -> dict[str, Any]:
    days = args.days if args.days is not None else settings.retention_days
    today = local_today(settings.report_timezone)
    with get_session() as session:
        return {"success": True, "deleted": prune_old_rows(session, today, retention_days=days)}


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging("surf-report-cli")

    try:
        if args.command == "init-db":
            init_db()
            body: dict[str, Any] = {"success": True}
        elif args.command == "generate":
            body = _generate(args)
        elif args.command == "refresh":
            body = _refresh(args)
        else:
            body = _prune(args)
    except SurfReportError as exc:
        logger.error("%s failed: %s", args.command, exc)
        body = {"success": False, "error": str(exc)}

    print(json.dumps(body, indent=2))
    return 0 if body.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())
