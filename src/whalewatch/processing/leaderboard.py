"""Ranked top-trader list assembled from provider pages.

Redis Key Schema:
- whalewatch:leaderboard:{period}:{limit} - JSON list of TraderRecord, short TTL
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import orjson
from pydantic import ValidationError
from redis.exceptions import RedisError

from whalewatch.core.constants import (
    LEADERBOARD_CACHE_PREFIX,
    LEADERBOARD_HARD_LIMIT,
    LEADERBOARD_PAGE_SIZE,
)
from whalewatch.core.exceptions import UpstreamUnavailableError
from whalewatch.core.logging import get_logger
from whalewatch.markets.models import Period, TraderRecord

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from whalewatch.markets.base import WhaleDataProvider

logger = get_logger(__name__)


class LeaderboardAdapter:
    """Fetches the PnL leaderboard page by page, de-duplicated by address."""

    def __init__(
        self,
        provider: WhaleDataProvider,
        redis: Redis | None = None,
        page_size: int = LEADERBOARD_PAGE_SIZE,
        max_limit: int = LEADERBOARD_HARD_LIMIT,
        cache_ttl: int = 300,
    ) -> None:
        self._provider = provider
        self._redis = redis
        self.page_size = page_size
        self.max_limit = min(max_limit, LEADERBOARD_HARD_LIMIT)
        self.cache_ttl = cache_ttl

    def clamp_limit(self, limit: int) -> int:
        return max(1, min(limit, self.max_limit))

    async def get_top_traders(self, limit: int, period: Period) -> list[TraderRecord]:
        """Top ``limit`` traders by PnL for ``period``.

        Args:
            limit: Requested size, clamped to [1, max_limit]
            period: Leaderboard window

        Returns:
            At most ``limit`` records with unique, lowercase addresses in rank
            order. Fewer if the provider runs out of rows.

        Raises:
            UpstreamUnavailableError: if the first page cannot be fetched
        """
        limit = self.clamp_limit(limit)
        cache_key = f"{LEADERBOARD_CACHE_PREFIX}:{period.value}:{limit}"

        cached = await self._read_cache(cache_key)
        if cached is not None:
            return cached

        traders, complete = await self._fetch(limit, period)
        if complete:
            await self._write_cache(cache_key, traders)

        logger.info(
            "Leaderboard assembled",
            period=period.value,
            limit=limit,
            count=len(traders),
            complete=complete,
        )
        return traders

    async def _fetch(self, limit: int, period: Period) -> tuple[list[TraderRecord], bool]:
        seen: set[str] = set()
        traders: list[TraderRecord] = []
        offset = 0

        while len(traders) < limit:
            try:
                page = await self._provider.fetch_leaderboard_page(offset, self.page_size, period)
            except UpstreamUnavailableError:
                if not traders:
                    raise
                logger.warning(
                    "Leaderboard page failed, returning partial list",
                    period=period.value,
                    offset=offset,
                    count=len(traders),
                )
                return traders, False

            for trader in page:
                if trader.address in seen:
                    continue
                seen.add(trader.address)
                traders.append(trader)
                if len(traders) >= limit:
                    break

            if len(page) < self.page_size:
                break
            offset += self.page_size

        return traders, True

    async def _read_cache(self, key: str) -> list[TraderRecord] | None:
        if self._redis is None or self.cache_ttl <= 0:
            return None
        try:
            cached = await self._redis.get(key)
        except RedisError as e:
            logger.warning("Leaderboard cache read failed", key=key, error=str(e))
            return None
        if not cached:
            return None
        try:
            return [TraderRecord.model_validate(t) for t in orjson.loads(cached)]
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning("Cache deserialization failed", key=key, error=str(e))
            return None

    async def _write_cache(self, key: str, traders: list[TraderRecord]) -> None:
        if self._redis is None or self.cache_ttl <= 0:
            return
        payload = orjson.dumps([t.model_dump(mode="json", by_alias=True) for t in traders])
        try:
            await self._redis.set(key, payload, ex=self.cache_ttl)
        except RedisError as e:
            logger.warning("Leaderboard cache write failed", key=key, error=str(e))
