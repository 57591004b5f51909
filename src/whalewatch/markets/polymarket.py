"""Polymarket Data API client (leaderboard, wallet profiles, positions, activity).

API Base: https://data-api.polymarket.com

Per-period profiles are not served by a single endpoint. They are computed
from the period leaderboard row (pnl/volume), the wallet's trade activity
(trade count) and its closed positions (win rate). A busy wallet needs many
activity pages, so each computation runs as a shielded background task and
``fetch_profile`` answers ``pending`` when it takes longer than
``compute_timeout``. The next call for the same (address, period) picks up
the finished result.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass, field as dataclass_field
from datetime import UTC, datetime
from typing import Any

import httpx

from whalewatch.core.constants import (
    CLOSED_POSITIONS_LIMIT,
    COMPUTED_PROFILE_RETENTION_SECONDS,
    DEFAULT_POLYMARKET_DATA_API_URL,
    LEADERBOARD_ORDER_BY,
    TRADE_COUNT_CAP,
    TRADE_PAGE_SIZE,
)
from whalewatch.core.exceptions import UpstreamUnavailableError
from whalewatch.core.logging import get_logger
from whalewatch.markets.metrics import (
    compute_smart_score,
    compute_win_rate,
    trade_count_display,
)
from whalewatch.markets.models import (
    MetricsStatus,
    Period,
    PeriodMetrics,
    TraderRecord,
    normalize_address,
)

logger = get_logger(__name__)


@dataclass
class PolymarketDataClient:
    """Client for the Polymarket Data API.

    Implements ``WhaleDataProvider``. Constructed once by the application
    lifespan and injected wherever provider access is needed.
    """

    base_url: str = DEFAULT_POLYMARKET_DATA_API_URL
    timeout: float = 30.0
    compute_timeout: float = 8.0
    result_ttl: float = COMPUTED_PROFILE_RETENTION_SECONDS

    _client: httpx.AsyncClient | None = dataclass_field(default=None, init=False, repr=False)
    _computations: dict[tuple[str, Period], asyncio.Task[PeriodMetrics]] = dataclass_field(
        default_factory=dict, init=False, repr=False
    )
    _evictions: dict[tuple[str, Period], asyncio.TimerHandle] = dataclass_field(
        default_factory=dict, init=False, repr=False
    )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Cancel running profile computations and close the HTTP client."""
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        tasks = list(self._computations.values())
        self._computations.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> PolymarketDataClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        client = self._get_client()
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as e:
            logger.warning("Data API request failed", path=path, error=str(e))
            raise UpstreamUnavailableError(f"Data API {path} failed: {e}") from e

    # ─────────────────────────────────────────────────────────────
    # Leaderboard
    # ─────────────────────────────────────────────────────────────

    async def fetch_leaderboard_page(
        self, offset: int, page_size: int, period: Period
    ) -> list[TraderRecord]:
        """Fetch one leaderboard page ordered by PnL.

        Args:
            offset: Zero-based rank offset
            page_size: Rows per page
            period: Leaderboard window

        Returns:
            Parsed rows in rank order; rows without a wallet are dropped
        """
        data = await self._get_json(
            "/v1/leaderboard",
            params={
                "timePeriod": period.api_value,
                "orderBy": LEADERBOARD_ORDER_BY,
                "limit": page_size,
                "offset": offset,
            },
        )
        rows = data if isinstance(data, list) else []
        traders: list[TraderRecord] = []
        for i, row in enumerate(rows):
            trader = self._parse_leaderboard_row(row, fallback_rank=offset + i + 1)
            if trader is not None:
                traders.append(trader)
        return traders

    @staticmethod
    def _parse_leaderboard_row(row: dict[str, Any], fallback_rank: int) -> TraderRecord | None:
        address = str(row.get("proxyWallet") or row.get("address") or "").strip()
        if not address:
            return None
        try:
            rank = int(row.get("rank") or fallback_rank)
        except (TypeError, ValueError):
            rank = fallback_rank
        return TraderRecord(
            address=address,
            rank=max(rank, 1),
            pnl=float(row.get("pnl", 0) or 0),
            volume=float(row.get("vol", row.get("volume", 0)) or 0),
            user_name=row.get("userName") or None,
            x_username=row.get("xUsername") or None,
            profile_image=row.get("profileImage") or None,
            verified_badge=row.get("verifiedBadge"),
            trades=row.get("trades"),
            positions=row.get("positions"),
        )

    # ─────────────────────────────────────────────────────────────
    # Profiles
    # ─────────────────────────────────────────────────────────────

    async def fetch_profile(self, address: str, period: Period) -> PeriodMetrics:
        """Return the wallet's metrics for ``period``, or ``pending`` if still computing.

        Raises:
            UpstreamUnavailableError: if the computation failed
        """
        key = (normalize_address(address), period)
        task = self._computations.get(key)
        if task is None:
            task = asyncio.create_task(
                self._compute_profile(*key), name=f"profile:{key[0]}:{period.value}"
            )
            task.add_done_callback(functools.partial(self._on_computation_done, key))
            self._computations[key] = task

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.compute_timeout)
        except TimeoutError:
            logger.debug("Profile still computing", address=key[0][:10], period=period.value)
            return PeriodMetrics.pending()
        finally:
            if task.done():
                self._forget(key, task)

    def _on_computation_done(
        self, key: tuple[str, Period], task: asyncio.Task[PeriodMetrics]
    ) -> None:
        # Retrieve the exception so an abandoned computation doesn't warn at GC
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Profile computation failed", task=task.get_name())
        if self._computations.get(key) is task:
            self._evictions[key] = asyncio.get_running_loop().call_later(
                self.result_ttl, self._forget, key, task
            )

    def _forget(self, key: tuple[str, Period], task: asyncio.Task[PeriodMetrics]) -> None:
        """Drop a finished computation unless a newer one replaced it."""
        if self._computations.get(key) is task:
            del self._computations[key]
            handle = self._evictions.pop(key, None)
            if handle is not None:
                handle.cancel()

    async def _compute_profile(self, address: str, period: Period) -> PeriodMetrics:
        since = period.start()

        pnl, volume = await self._fetch_period_totals(address, period)
        trade_count, truncated = await self._count_trades(address, since)
        closed = await self._get_json(
            "/closed-positions",
            params={"user": address, "limit": CLOSED_POSITIONS_LIMIT},
        )
        win_rate = compute_win_rate(closed if isinstance(closed, list) else [], since)

        metrics = PeriodMetrics(
            pnl=pnl,
            volume=volume,
            trade_count=trade_count,
            trade_count_display=trade_count_display(truncated),
            win_rate=win_rate,
            smart_score=compute_smart_score(pnl, volume, win_rate, trade_count),
            status=MetricsStatus.SUCCESS,
        )
        logger.debug(
            "Profile computed",
            address=address[:10],
            period=period.value,
            trade_count=trade_count,
            smart_score=metrics.smart_score,
        )
        return metrics

    async def _fetch_period_totals(self, address: str, period: Period) -> tuple[float, float]:
        data = await self._get_json(
            "/v1/leaderboard",
            params={
                "timePeriod": period.api_value,
                "orderBy": LEADERBOARD_ORDER_BY,
                "limit": 1,
                "user": address,
            },
        )
        if not isinstance(data, list) or not data:
            return 0.0, 0.0
        row = data[0]
        return float(row.get("pnl", 0) or 0), float(row.get("vol", 0) or 0)

    async def _count_trades(self, address: str, since: datetime | None) -> tuple[int, bool]:
        """Count TRADE activity rows since ``since``.

        Returns:
            (count, truncated) where truncated means the offset cap was hit
        """
        params: dict[str, Any] = {"user": address, "type": "TRADE", "limit": TRADE_PAGE_SIZE}
        if since is not None:
            params["start"] = int(since.astimezone(UTC).timestamp())

        count = 0
        offset = 0
        while offset < TRADE_COUNT_CAP:
            page = await self._get_json("/activity", params={**params, "offset": offset})
            rows = page if isinstance(page, list) else []
            count += len(rows)
            if len(rows) < TRADE_PAGE_SIZE:
                return count, False
            offset += TRADE_PAGE_SIZE
        return count, True

    # ─────────────────────────────────────────────────────────────
    # Pass-through
    # ─────────────────────────────────────────────────────────────

    async def fetch_positions(self, address: str) -> list[dict[str, Any]]:
        """Get wallet positions from Data API."""
        data = await self._get_json("/positions", params={"user": normalize_address(address)})
        return data if isinstance(data, list) else []

    async def fetch_activity(self, address: str, limit: int) -> list[dict[str, Any]]:
        """Get recent wallet activity from Data API."""
        data = await self._get_json(
            "/activity", params={"user": normalize_address(address), "limit": limit}
        )
        return data if isinstance(data, list) else []
