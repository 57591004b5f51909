"""Enrichment, caching, watch list, leaderboard, and legacy migration."""

from whalewatch.processing.enrichment import (
    EnrichmentOrchestrator,
    EnrichmentState,
    PollSession,
)
from whalewatch.processing.leaderboard import LeaderboardAdapter
from whalewatch.processing.migration import (
    FileSystemLegacySource,
    LegacySource,
    MigrationAdapter,
    MigrationReport,
)
from whalewatch.processing.profile_cache import ProfileCache
from whalewatch.processing.watchlist import WatchListManager

__all__ = [
    "EnrichmentOrchestrator",
    "EnrichmentState",
    "FileSystemLegacySource",
    "LeaderboardAdapter",
    "LegacySource",
    "MigrationAdapter",
    "MigrationReport",
    "PollSession",
    "ProfileCache",
    "WatchListManager",
]
