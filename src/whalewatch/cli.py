"""CLI entry point for whalewatch."""

from __future__ import annotations

import argparse
import asyncio
import sys

import orjson
import uvicorn

from whalewatch.config import get_settings
from whalewatch.core.exceptions import MigrationError, WhalewatchError
from whalewatch.core.logging import setup_logging
from whalewatch.markets.models import Period
from whalewatch.processing.leaderboard import LeaderboardAdapter
from whalewatch.processing.migration import FileSystemLegacySource, MigrationAdapter
from whalewatch.service import build_provider
from whalewatch.storage.database import Database


async def _migrate(data_dir: str, database_path: str, force: bool) -> int:
    db = Database(database_path)
    await db.connect()
    try:
        report = await MigrationAdapter(db, FileSystemLegacySource(data_dir)).run(force=force)
    except MigrationError as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1
    finally:
        await db.disconnect()

    if report.skipped:
        print("Already migrated (use --force to run again)")
    else:
        print(
            f"Watched: {report.watched_inserted}/{report.watched_seen} inserted, "
            f"profiles: {report.profiles_written} written, "
            f"{report.profiles_unchanged} unchanged, {report.failures} failed "
            f"in {report.duration_seconds}s"
        )
    return 0


async def _top(limit: int, period: Period, as_json: bool) -> int:
    settings = get_settings()
    provider = build_provider(settings)
    try:
        adapter = LeaderboardAdapter(
            provider,
            page_size=settings.leaderboard_page_size,
            max_limit=settings.leaderboard_max_limit,
        )
        traders = await adapter.get_top_traders(limit, period)
    except WhalewatchError as e:
        print(f"Leaderboard unavailable: {e}", file=sys.stderr)
        return 1
    finally:
        await provider.close()

    if as_json:
        payload = [t.model_dump(mode="json", by_alias=True) for t in traders]
        print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
        return 0
    for t in traders:
        name = t.user_name or t.address
        print(f"{t.rank:>4}  {name:<44}  pnl={t.pnl:>14,.2f}  vol={t.volume:>16,.2f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Whalewatch")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve.add_argument("--host", default="0.0.0.0", help="Bind host")
    serve.add_argument("--port", type=int, default=8000, help="Bind port")

    migrate = sub.add_parser("migrate", help="Import legacy JSON data into SQLite")
    migrate.add_argument("--data-dir", default=settings.legacy_data_dir)
    migrate.add_argument("--db", default=settings.database_path, help="SQLite file")
    migrate.add_argument("--force", action="store_true", help="Ignore the completion marker")

    top = sub.add_parser("top", help="Print the PnL leaderboard")
    top.add_argument("--limit", type=int, default=20)
    top.add_argument("--period", type=Period.parse, default=Period.ALL)
    top.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    command = args.command or "serve"

    if command == "serve":
        uvicorn.run(
            "whalewatch.main:app",
            host=getattr(args, "host", "0.0.0.0"),
            port=getattr(args, "port", 8000),
            reload=getattr(args, "reload", False),
        )
        return

    setup_logging(get_settings())
    if command == "migrate":
        code = asyncio.run(_migrate(args.data_dir, args.db, args.force))
    else:
        code = asyncio.run(_top(args.limit, args.period, args.json))
    sys.exit(code)
