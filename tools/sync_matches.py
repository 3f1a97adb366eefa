"""
Match sync CLI: run the sync engine and completeness report outside the API.

Usage:
    # Full sync of one lifecycle bucket, optionally for one provider day:
    python -m tools.sync_matches full --type ended --day 20250101 --league 94

    # Daily bundle (upcoming today + tomorrow, ended today):
    python -m tools.sync_matches full-all

    # Selective sync by external id:
    python -m tools.sync_matches selective 9123456 9123457 --force --stats-only

    # Re-fetch stored matches missing statistics / xG / possession:
    python -m tools.sync_matches resync --limit 50

    # Data completeness report:
    python -m tools.sync_matches completeness
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add backend to Python path so we can import app modules
sys.path.insert(0, "backend")

# Default to local MongoDB when not set
if "MONGO_URI" not in os.environ:
    os.environ["MONGO_URI"] = "mongodb://localhost:27017"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("sync_matches")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Football match sync operations")
    sub = parser.add_subparsers(dest="command", required=True)

    full = sub.add_parser("full", help="Full sync of one lifecycle bucket")
    full.add_argument("--type", dest="match_type", choices=["upcoming", "inplay", "ended"], required=True)
    full.add_argument("--day", help="Provider calendar day, YYYYMMDD")
    full.add_argument("--league", dest="league_id", help="Provider league id filter")

    sub.add_parser("full-all", help="Upcoming today/tomorrow and ended today")

    selective = sub.add_parser("selective", help="Sync explicit external ids")
    selective.add_argument("external_ids", nargs="+")
    selective.add_argument("--force", action="store_true", help="Skip the material-change check")
    selective.add_argument("--stats-only", action="store_true", help="Only merge statistics and timer")

    resync = sub.add_parser("resync", help="Re-fetch matches with incomplete statistics")
    resync.add_argument("--limit", type=int, default=None)

    sub.add_parser("completeness", help="Print the data completeness report")
    return parser


async def run(args: argparse.Namespace) -> dict:
    import app.database as _db
    from app.models.sync import SelectiveSyncOptions
    from app.providers.betsapi import betsapi_provider
    from app.services.match_analytics_service import match_analytics_service
    from app.services.match_sync_service import match_sync_service

    await _db.connect_db()
    log.info("Connected to MongoDB: %s", _db.db.name)
    try:
        if args.command == "full":
            result = await match_sync_service.full_sync(args.match_type, args.day, args.league_id)
        elif args.command == "full-all":
            result = await match_sync_service.full_sync_all()
        elif args.command == "selective":
            options = SelectiveSyncOptions(force_overwrite=args.force, stats_only=args.stats_only)
            result = await match_sync_service.selective_sync(args.external_ids, options)
        elif args.command == "resync":
            result = await match_sync_service.resync_incomplete(args.limit)
        else:
            result = await match_analytics_service.completeness()
        return result.model_dump(mode="json")
    finally:
        await betsapi_provider.aclose()
        await _db.close_db()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    from app.providers.betsapi import RemoteFetchError

    try:
        report = asyncio.run(run(args))
    except RemoteFetchError as exc:
        log.error("Provider fetch failed: %s", exc)
        return 2
    except ValueError as exc:
        log.error("Invalid argument: %s", exc)
        return 1
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
