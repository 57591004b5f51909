"""Trading-data provider: models, protocol, and Polymarket Data API client."""

from whalewatch.markets.base import WhaleDataProvider
from whalewatch.markets.models import (
    CacheEntry,
    CacheLookup,
    MetricsStatus,
    Period,
    PeriodMetrics,
    TraderRecord,
    WatchedAddress,
    normalize_address,
)
from whalewatch.markets.polymarket import PolymarketDataClient

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "MetricsStatus",
    "Period",
    "PeriodMetrics",
    "PolymarketDataClient",
    "TraderRecord",
    "WatchedAddress",
    "WhaleDataProvider",
    "normalize_address",
]
