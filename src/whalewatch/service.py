"""Composition root: builds, wires and tears down every collaborator."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from redis.asyncio import Redis

from whalewatch.config import Settings
from whalewatch.core.exceptions import MigrationError, RedisConnectionError
from whalewatch.core.logging import get_logger
from whalewatch.core.tasks import TaskSupervisor
from whalewatch.markets.base import WhaleDataProvider
from whalewatch.markets.polymarket import PolymarketDataClient
from whalewatch.processing.enrichment import EnrichmentOrchestrator
from whalewatch.processing.leaderboard import LeaderboardAdapter
from whalewatch.processing.migration import FileSystemLegacySource, MigrationAdapter
from whalewatch.processing.profile_cache import ProfileCache
from whalewatch.processing.watchlist import WatchListManager
from whalewatch.scheduler import create_scheduler, watchlist_refresh_job
from whalewatch.storage.database import Database
from whalewatch.storage.redis import close_redis, init_redis

logger = get_logger(__name__)


@dataclass
class AppState:
    """Holds references to all running service resources."""

    settings: Settings
    db: Database
    provider: WhaleDataProvider
    cache: ProfileCache
    leaderboard: LeaderboardAdapter
    orchestrator: EnrichmentOrchestrator
    watchlist: WatchListManager
    tasks: TaskSupervisor
    redis: Redis | None = None
    scheduler: AsyncIOScheduler | None = None


def build_provider(settings: Settings) -> PolymarketDataClient:
    return PolymarketDataClient(
        base_url=settings.polymarket_data_api_url,
        timeout=settings.http_timeout,
        compute_timeout=settings.profile_compute_timeout,
        result_ttl=settings.profile_result_retention,
    )


async def run_legacy_migration(
    db: Database, data_dir: str | Path, force: bool = False
) -> None:
    """Import legacy JSON data if the directory exists; failures are logged."""
    if not Path(data_dir).is_dir():
        logger.debug("No legacy data directory", path=str(data_dir))
        return
    try:
        await MigrationAdapter(db, FileSystemLegacySource(data_dir)).run(force=force)
    except MigrationError as e:
        logger.error("Legacy migration failed", error=str(e))


@asynccontextmanager
async def service_lifespan(
    settings: Settings,
    provider: WhaleDataProvider | None = None,
) -> AsyncIterator[AppState]:
    """Start every component, yield the wired ``AppState``, then shut down.

    Args:
        settings: Application settings
        provider: Trading-data provider; a ``PolymarketDataClient`` is built
            from settings when omitted
    """
    db = Database(settings.database_path)
    redis: Redis | None = None
    tasks = TaskSupervisor()
    scheduler: AsyncIOScheduler | None = None
    provider = provider or build_provider(settings)

    try:
        # 1. SQLite store (required)
        await db.connect()
        logger.debug("Database connected", path=settings.database_path)

        if settings.migrate_on_startup:
            await run_legacy_migration(db, settings.legacy_data_dir)

        # 2. Redis (optional leaderboard cache)
        if settings.redis_url:
            try:
                redis = await init_redis(settings.redis_url)
            except RedisConnectionError as e:
                logger.warning("Redis unavailable, leaderboard caching disabled", error=str(e))
        else:
            logger.info("No REDIS_URL configured, leaderboard caching disabled")

        # 3. Core components
        cache = ProfileCache(db, ttl_seconds=settings.profile_cache_ttl_seconds)
        orchestrator = EnrichmentOrchestrator(
            cache,
            provider,
            concurrency=settings.enrichment_concurrency,
            fetch_timeout=settings.profile_fetch_timeout,
        )
        leaderboard = LeaderboardAdapter(
            provider,
            redis=redis,
            page_size=settings.leaderboard_page_size,
            max_limit=settings.leaderboard_max_limit,
            cache_ttl=settings.leaderboard_cache_ttl_seconds,
        )
        watchlist = WatchListManager(
            db,
            orchestrator=orchestrator,
            tasks=tasks,
            label_max_length=settings.watch_label_max_length,
        )

        # 4. Periodic refresh of watched addresses
        if settings.watch_refresh_interval_minutes > 0:
            scheduler = create_scheduler()
            scheduler.add_job(
                watchlist_refresh_job,
                IntervalTrigger(minutes=settings.watch_refresh_interval_minutes),
                args=[watchlist],
                id="watchlist_refresh",
                max_instances=1,
                misfire_grace_time=None,
                next_run_time=datetime.now(UTC) + timedelta(seconds=30),
            )
            scheduler.start()

        logger.info(
            "Service ready",
            env=settings.env,
            redis_enabled=redis is not None,
            watched=await db.count_watched(),
            cached_profiles=await db.count_whales(),
        )

        yield AppState(
            settings=settings,
            db=db,
            provider=provider,
            cache=cache,
            leaderboard=leaderboard,
            orchestrator=orchestrator,
            watchlist=watchlist,
            tasks=tasks,
            redis=redis,
            scheduler=scheduler,
        )

    finally:
        logger.info("Shutting down...")

        if scheduler and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.debug("Scheduler stopped")

        await tasks.shutdown()

        try:
            await provider.close()
        except Exception as e:
            logger.error("Failed to close provider", error=str(e))

        await close_redis(redis)
        await db.disconnect()
