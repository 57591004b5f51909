"""Tests for ProfileCache."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import aiosqlite
import orjson
import pytest
from fakes import make_metrics

from whalewatch.core.exceptions import StorageError
from whalewatch.markets.models import Period, PeriodMetrics
from whalewatch.processing.profile_cache import ProfileCache
from whalewatch.storage.database import Database

A1 = "0x" + "a1" * 20
A2 = "0x" + "a2" * 20


class TestPutGet:
    async def test_put_then_get(self, db: Database) -> None:
        cache = ProfileCache(db)
        m = make_metrics(pnl=100.0)

        await cache.put(A1, Period.ALL, m)

        assert await cache.get(A1, Period.ALL) == m
        assert await cache.get(A1, Period.WEEK) is None

    async def test_periods_accumulate(self, db: Database) -> None:
        cache = ProfileCache(db)
        week = make_metrics(pnl=5.0)
        all_time = make_metrics(pnl=500.0)

        await cache.put(A1, Period.WEEK, week)
        await cache.put(A1, Period.ALL, all_time)

        assert await cache.get(A1, Period.WEEK) == week
        assert await cache.get(A1, Period.ALL) == all_time
        assert await db.count_whales() == 1

    async def test_address_normalized(self, db: Database) -> None:
        cache = ProfileCache(db)
        await cache.put(A1.upper(), Period.ALL, make_metrics())
        assert await cache.is_fresh(A1, Period.ALL)

    async def test_last_updated_moves_forward(self, db: Database) -> None:
        cache = ProfileCache(db)
        first = await cache.put(A1, Period.DAY, make_metrics())
        second = await cache.put(A1, Period.WEEK, make_metrics())
        assert second.last_updated >= first.last_updated

    @pytest.mark.parametrize(
        "metrics",
        [
            PeriodMetrics.pending(),
            PeriodMetrics.unknown(),
            PeriodMetrics(pnl=1.0, from_leaderboard=True),
        ],
    )
    async def test_rejects_non_final(self, db: Database, metrics: PeriodMetrics) -> None:
        cache = ProfileCache(db)
        with pytest.raises(ValueError, match="cacheable"):
            await cache.put(A1, Period.ALL, metrics)
        assert await db.count_whales() == 0

    async def test_concurrent_puts_same_address_keep_all_periods(self, db: Database) -> None:
        cache = ProfileCache(db)
        await asyncio.gather(
            *(cache.put(A1, period, make_metrics(pnl=float(i))) for i, period in enumerate(Period))
        )
        entry = await cache.get_entry(A1)
        assert entry is not None
        assert set(entry.periods) == {p.value for p in Period}

    async def test_write_failure_raises_storage_error(self, db: Database) -> None:
        cache = ProfileCache(db)
        db.replace_whale = AsyncMock(side_effect=aiosqlite.OperationalError("disk full"))  # type: ignore[method-assign]
        with pytest.raises(StorageError, match="disk full"):
            await cache.put(A1, Period.ALL, make_metrics())


class TestFreshness:
    async def test_expired_period_is_miss(self, db: Database) -> None:
        cache = ProfileCache(db, ttl_seconds=60)
        await cache.put(A1, Period.ALL, make_metrics())

        entry = await cache.get_entry(A1)
        assert entry is not None
        old = datetime.now(UTC) - timedelta(minutes=5)
        blob = entry.model_copy(update={"period_updated": {"all": old}})
        await db.replace_whale(
            A1, orjson.dumps(blob.model_dump(mode="json", by_alias=True)).decode(), old
        )

        assert await cache.get(A1, Period.ALL) is None
        lookup = await cache.bulk_lookup([A1], Period.ALL)
        assert not lookup[A1].cached

    async def test_zero_ttl_never_expires(self, db: Database) -> None:
        cache = ProfileCache(db, ttl_seconds=0)
        ancient = datetime(2020, 1, 1, tzinfo=UTC)
        blob = {"periods": {"all": {"pnl": 1, "volume": 2}}, "periodUpdated": {"all": ancient.isoformat()}}
        await db.replace_whale(A1, orjson.dumps(blob).decode(), ancient)
        assert await cache.get(A1, Period.ALL) is not None


class TestBulkLookup:
    async def test_every_address_present(self, db: Database) -> None:
        cache = ProfileCache(db)
        await cache.put(A1, Period.ALL, make_metrics(pnl=100.0))

        result = await cache.bulk_lookup([A1, A2, A2.upper()], Period.ALL)

        assert set(result) == {A1, A2}
        assert result[A1].cached
        assert result[A1].metrics is not None and result[A1].metrics.pnl == 100.0
        assert not result[A2].cached
        assert result[A2].metrics is None

    async def test_other_period_is_miss(self, db: Database) -> None:
        cache = ProfileCache(db)
        await cache.put(A1, Period.ALL, make_metrics())
        result = await cache.bulk_lookup([A1], Period.DAY)
        assert not result[A1].cached

    async def test_empty(self, db: Database) -> None:
        assert await ProfileCache(db).bulk_lookup([], Period.ALL) == {}

    async def test_unparseable_blob_is_miss(self, db: Database) -> None:
        await db.replace_whale(A1, "{not json", datetime.now(UTC))
        await db.replace_whale(A2, "[1, 2]", datetime.now(UTC))
        result = await ProfileCache(db).bulk_lookup([A1, A2], Period.ALL)
        assert not result[A1].cached
        assert not result[A2].cached

    async def test_read_failure_raises_storage_error(self, db: Database) -> None:
        cache = ProfileCache(db)
        db.get_whales = AsyncMock(side_effect=aiosqlite.OperationalError("locked"))  # type: ignore[method-assign]
        with pytest.raises(StorageError):
            await cache.bulk_lookup([A1], Period.ALL)


class TestLegacyBlobs:
    async def test_legacy_entry_without_status(self, db: Database) -> None:
        blob = {
            "address": A1,
            "periods": {
                "7d": {"pnl": 12.5, "volume": 100, "tradeCount": 4, "winRate": 0.75, "smartScore": 61},
                "30d": {"pnl": "not a number"},
                "all": "garbage",
            },
        }
        await db.replace_whale(A1, orjson.dumps(blob).decode(), datetime.now(UTC))

        cache = ProfileCache(db)
        week = await cache.get(A1, Period.WEEK)
        assert week is not None
        assert week.is_final
        assert week.trade_count == 4
        assert week.smart_score == 61
        assert await cache.get(A1, Period.MONTH) is None
        assert await cache.get(A1, Period.ALL) is None

    async def test_put_preserves_legacy_periods(self, db: Database) -> None:
        blob = {"periods": {"7d": {"pnl": 1, "volume": 2}}}
        await db.replace_whale(A1, orjson.dumps(blob).decode(), datetime.now(UTC))

        cache = ProfileCache(db)
        await cache.put(A1, Period.ALL, make_metrics())

        assert await cache.get(A1, Period.WEEK) is not None
        assert await cache.get(A1, Period.ALL) is not None
