"""Periodic jobs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from whalewatch.core.logging import get_logger

if TYPE_CHECKING:
    from whalewatch.processing.watchlist import WatchListManager

logger = get_logger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Create a new scheduler instance."""
    return AsyncIOScheduler(timezone="UTC")


async def watchlist_refresh_job(watchlist: WatchListManager) -> None:
    """Keep cached metrics of watched addresses from going stale."""
    try:
        count = await watchlist.refresh_stale()
        if count:
            logger.info("Watched addresses refreshed", count=count)
    except Exception:
        logger.exception("Watch list refresh job failed")
