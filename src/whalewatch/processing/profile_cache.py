"""Durable per-address, per-period profile cache.

Each address owns one JSON blob in the ``whales`` table holding every cached
period. Updating one period is a read-modify-write of that blob, so writes
for the same address are serialized with a per-address ``asyncio.Lock``;
different addresses write independently. Only ``success`` metrics are ever
stored.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import orjson
from pydantic import ValidationError

from whalewatch.core.exceptions import StorageError
from whalewatch.core.logging import get_logger
from whalewatch.markets.models import (
    CacheEntry,
    CacheLookup,
    MetricsStatus,
    Period,
    PeriodMetrics,
    normalize_address,
)
from whalewatch.storage.database import Database, from_millis

logger = get_logger(__name__)


class ProfileCache:
    """Cache of ``PeriodMetrics`` keyed by (address, period), backed by SQLite."""

    def __init__(self, db: Database, ttl_seconds: int = 0) -> None:
        """Initialize the cache.

        Args:
            db: Connected database
            ttl_seconds: Age after which a cached period counts as a miss.
                0 keeps entries forever.
        """
        self._db = db
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds > 0 else None
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, address: str) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        return lock

    async def get_entry(self, address: str) -> CacheEntry | None:
        address = normalize_address(address)
        try:
            row = await self._db.get_whale(address)
        except aiosqlite.Error as e:
            raise StorageError(f"Cache read failed for {address}: {e}") from e
        return _parse_row(row) if row is not None else None

    async def get(self, address: str, period: Period) -> PeriodMetrics | None:
        """Return fresh cached metrics, or None on a miss."""
        entry = await self.get_entry(address)
        if entry is None:
            return None
        return self._fresh_metrics(entry, period)

    async def is_fresh(self, address: str, period: Period) -> bool:
        return await self.get(address, period) is not None

    async def bulk_lookup(
        self, addresses: Iterable[str], period: Period
    ) -> dict[str, CacheLookup]:
        """Check many addresses with one store read.

        Every requested address appears in the result. Misses, stale periods
        and unreadable blobs are reported as ``cached=False``.
        """
        wanted = list(dict.fromkeys(normalize_address(a) for a in addresses if a.strip()))
        result = {address: CacheLookup(cached=False) for address in wanted}
        if not wanted:
            return result

        try:
            rows = await self._db.get_whales(wanted)
        except aiosqlite.Error as e:
            raise StorageError(f"Bulk cache read failed: {e}") from e

        for row in rows:
            entry = _parse_row(row)
            if entry is None:
                continue
            metrics = self._fresh_metrics(entry, period)
            if metrics is not None:
                result[entry.address] = CacheLookup(cached=True, metrics=metrics)

        logger.debug(
            "Bulk cache lookup",
            period=period.value,
            requested=len(wanted),
            hits=sum(1 for r in result.values() if r.cached),
        )
        return result

    async def put(self, address: str, period: Period, metrics: PeriodMetrics) -> CacheEntry:
        """Store a successful result for one period, keeping the other periods.

        Raises:
            ValueError: if ``metrics`` is not a success (pending and error
                results are never cached)
        """
        if metrics.status is not MetricsStatus.SUCCESS or metrics.from_leaderboard:
            raise ValueError(f"Only success metrics are cacheable, got {metrics.status.value}")

        address = normalize_address(address)
        async with self._lock_for(address):
            entry = await self.get_entry(address) or CacheEntry(address=address)
            now = datetime.now(UTC)
            entry = entry.model_copy(
                update={
                    "periods": {**entry.periods, period.value: metrics},
                    "period_updated": {**entry.period_updated, period.value: now},
                    "last_updated": now,
                }
            )
            try:
                await self._db.replace_whale(address, _dump_entry(entry), now)
            except aiosqlite.Error as e:
                raise StorageError(f"Cache write failed for {address}: {e}") from e

        logger.debug("Profile cached", address=address[:10], period=period.value)
        return entry

    def _fresh_metrics(self, entry: CacheEntry, period: Period) -> PeriodMetrics | None:
        metrics = entry.periods.get(period.value)
        if metrics is None:
            return None
        if self._ttl is not None:
            updated = entry.period_updated.get(period.value, entry.last_updated)
            if datetime.now(UTC) - updated > self._ttl:
                return None
        return metrics


def _dump_entry(entry: CacheEntry) -> str:
    return orjson.dumps(entry.model_dump(mode="json", by_alias=True)).decode("utf-8")


def _parse_row(row: aiosqlite.Row) -> CacheEntry | None:
    """Parse a stored blob, tolerating the legacy file format."""
    address = str(row["address"])
    try:
        raw: Any = orjson.loads(row["data"])
    except orjson.JSONDecodeError as e:
        logger.warning("Unreadable cache blob", address=address[:10], error=str(e))
        return None
    if not isinstance(raw, dict):
        logger.warning("Cache blob is not an object", address=address[:10])
        return None

    periods: dict[str, PeriodMetrics] = {}
    raw_periods = raw.get("periods")
    if isinstance(raw_periods, dict):
        for key, value in raw_periods.items():
            if not isinstance(value, dict):
                continue
            try:
                # Legacy entries carry no status; only successes were ever written
                metrics = PeriodMetrics.model_validate({"status": "success", **value})
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed cached period",
                    address=address[:10],
                    period=key,
                    error=str(e),
                )
                continue
            if metrics.is_final:
                periods[key] = metrics

    period_updated: dict[str, datetime] = {}
    raw_updated = raw.get("periodUpdated")
    if isinstance(raw_updated, dict):
        for key, value in raw_updated.items():
            try:
                parsed = datetime.fromisoformat(str(value))
            except ValueError:
                continue
            period_updated[key] = parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    return CacheEntry(
        address=address,
        periods=periods,
        period_updated=period_updated,
        last_updated=from_millis(row["last_updated"]),
    )
