"""Tests for the Polymarket Data API client."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pytest

from whalewatch.core.exceptions import UpstreamUnavailableError
from whalewatch.markets.models import MetricsStatus, Period
from whalewatch.markets.polymarket import PolymarketDataClient

WALLET = "0x" + "ab" * 20
BASE_URL = "https://data-api.test"

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def _client(handler: Handler, compute_timeout: float = 2.0) -> PolymarketDataClient:
    client = PolymarketDataClient(base_url=BASE_URL, compute_timeout=compute_timeout)
    client._client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return client


def _leaderboard_row(rank: int, /, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "rank": str(rank),
        "proxyWallet": f"0x{rank:040X}",
        "userName": f"trader{rank}",
        "xUsername": "",
        "verifiedBadge": rank == 1,
        "vol": 10000.0 * rank,
        "pnl": 5000.0 / rank,
        "profileImage": "",
    }
    row.update(overrides)
    return row


def _profile_handler(
    *,
    trades: int = 3,
    closed: list[dict[str, Any]] | None = None,
    totals: dict[str, Any] | None = None,
    delay: float = 0.0,
    seen: list[httpx.Request] | None = None,
) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if delay:
            await asyncio.sleep(delay)
        params = request.url.params
        if request.url.path == "/v1/leaderboard":
            return httpx.Response(200, json=[totals] if totals else [])
        if request.url.path == "/activity":
            offset = int(params.get("offset", "0"))
            page_size = int(params["limit"])
            remaining = max(0, trades - offset)
            return httpx.Response(200, json=[{"type": "TRADE"}] * min(page_size, remaining))
        if request.url.path == "/closed-positions":
            return httpx.Response(200, json=closed or [])
        return httpx.Response(404)

    return handler


class TestLeaderboardPage:
    async def test_parses_rows(self) -> None:
        seen: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[_leaderboard_row(1), _leaderboard_row(2)])

        client = _client(handler)
        traders = await client.fetch_leaderboard_page(0, 50, Period.WEEK)
        await client.close()

        assert len(traders) == 2
        first = traders[0]
        assert first.rank == 1
        assert first.address == f"0x{1:040x}"
        assert first.user_name == "trader1"
        assert first.x_username is None
        assert first.verified_badge is True
        assert first.volume == 10000.0
        assert first.pnl == 5000.0

        params = seen[0].url.params
        assert seen[0].url.path == "/v1/leaderboard"
        assert params["timePeriod"] == "WEEK"
        assert params["orderBy"] == "PNL"
        assert params["limit"] == "50"
        assert params["offset"] == "0"

    async def test_rows_without_wallet_dropped(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[_leaderboard_row(1, proxyWallet=""), _leaderboard_row(2)])

        client = _client(handler)
        traders = await client.fetch_leaderboard_page(0, 50, Period.ALL)
        await client.close()

        assert [t.rank for t in traders] == [2]

    async def test_missing_rank_uses_position(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[_leaderboard_row(1, rank=None)])

        client = _client(handler)
        traders = await client.fetch_leaderboard_page(100, 50, Period.ALL)
        await client.close()

        assert traders[0].rank == 101

    async def test_http_error_raises(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        client = _client(handler)
        with pytest.raises(UpstreamUnavailableError):
            await client.fetch_leaderboard_page(0, 50, Period.ALL)
        await client.close()

    async def test_network_error_raises(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        with pytest.raises(UpstreamUnavailableError):
            await client.fetch_leaderboard_page(0, 50, Period.ALL)
        await client.close()


class TestFetchProfile:
    async def test_computes_metrics(self) -> None:
        closed = [{"realizedPnl": 10}, {"realizedPnl": -4}, {"realizedPnl": 3}, {"realizedPnl": 0}]
        client = _client(
            _profile_handler(trades=40, closed=closed, totals={"pnl": 250.0, "vol": 5000.0})
        )

        metrics = await client.fetch_profile(WALLET, Period.ALL)
        await client.close()

        assert metrics.status is MetricsStatus.SUCCESS
        assert metrics.is_final
        assert metrics.pnl == 250.0
        assert metrics.volume == 5000.0
        assert metrics.trade_count == 40
        assert metrics.trade_count_display is None
        assert metrics.win_rate == 0.5
        assert metrics.smart_score is not None and 0 <= metrics.smart_score <= 100

    async def test_unknown_wallet_is_zeroed_success(self) -> None:
        client = _client(_profile_handler(trades=0))

        metrics = await client.fetch_profile(WALLET, Period.DAY)
        await client.close()

        assert metrics.is_success
        assert metrics.pnl == 0
        assert metrics.trade_count == 0
        assert metrics.win_rate == 0.0
        assert metrics.smart_score == 0

    async def test_windowed_period_sends_start(self) -> None:
        seen: list[httpx.Request] = []
        client = _client(_profile_handler(seen=seen))

        await client.fetch_profile(WALLET, Period.WEEK)
        await client.close()

        activity = [r for r in seen if r.url.path == "/activity"]
        totals = [r for r in seen if r.url.path == "/v1/leaderboard"]
        assert "start" in activity[0].url.params
        assert activity[0].url.params["type"] == "TRADE"
        assert totals[0].url.params["user"] == WALLET
        assert totals[0].url.params["timePeriod"] == "WEEK"

    async def test_trade_count_capped(self) -> None:
        client = _client(_profile_handler(trades=25000))

        metrics = await client.fetch_profile(WALLET, Period.ALL)
        await client.close()

        assert metrics.trade_count == 10000
        assert metrics.trade_count_display == "> 10000"

    async def test_slow_computation_returns_pending_then_result(self) -> None:
        client = _client(_profile_handler(delay=0.05), compute_timeout=0.01)

        first = await client.fetch_profile(WALLET, Period.ALL)
        assert first.status is MetricsStatus.PENDING

        await asyncio.sleep(0.5)
        second = await client.fetch_profile(WALLET, Period.ALL)
        await client.close()

        assert second.is_success

    async def test_pending_computation_shared(self) -> None:
        seen: list[httpx.Request] = []
        client = _client(_profile_handler(delay=0.05, seen=seen), compute_timeout=0.01)

        await client.fetch_profile(WALLET, Period.ALL)
        await client.fetch_profile(WALLET.upper(), Period.ALL)
        await asyncio.sleep(0.5)
        result = await client.fetch_profile(WALLET, Period.ALL)
        await client.close()

        assert result.is_success
        assert len([r for r in seen if r.url.path == "/closed-positions"]) == 1

    async def test_uncollected_result_evicted_after_retention(self) -> None:
        client = _client(_profile_handler(delay=0.05), compute_timeout=0.01)
        client.result_ttl = 0.1

        assert (await client.fetch_profile(WALLET, Period.ALL)).status is MetricsStatus.PENDING
        await asyncio.sleep(0.08)
        assert (WALLET, Period.ALL) in client._computations

        await asyncio.sleep(0.8)
        assert client._computations == {}
        assert client._evictions == {}
        await client.close()

    async def test_collected_result_cancels_eviction(self) -> None:
        client = _client(_profile_handler(delay=0.05), compute_timeout=0.01)

        await client.fetch_profile(WALLET, Period.ALL)
        await asyncio.sleep(0.6)
        assert (WALLET, Period.ALL) in client._evictions

        assert (await client.fetch_profile(WALLET, Period.ALL)).is_success
        assert client._computations == {}
        assert client._evictions == {}
        await client.close()

    async def test_upstream_failure_raises(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        client = _client(handler)
        with pytest.raises(UpstreamUnavailableError):
            await client.fetch_profile(WALLET, Period.ALL)
        assert client._computations == {}
        await client.close()

    async def test_close_cancels_computations(self) -> None:
        client = _client(_profile_handler(delay=5.0), compute_timeout=0.01)

        assert (await client.fetch_profile(WALLET, Period.ALL)).status is MetricsStatus.PENDING
        task = next(iter(client._computations.values()))
        await client.close()

        assert task.cancelled()
        assert client._computations == {}


class TestPassThrough:
    async def test_positions(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["user"] == WALLET
            return httpx.Response(200, json=[{"asset": "x", "size": 10}])

        client = _client(handler)
        assert await client.fetch_positions(WALLET.upper()) == [{"asset": "x", "size": 10}]
        await client.close()

    async def test_activity_limit(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "25"
            return httpx.Response(200, json=[])

        client = _client(handler)
        assert await client.fetch_activity(WALLET, 25) == []
        await client.close()

    async def test_non_list_body_is_empty(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "nope"})

        client = _client(handler)
        assert await client.fetch_positions(WALLET) == []
        await client.close()
