"""Trading-data provider protocol.

The enrichment core only talks to the provider through this interface, so
the Polymarket HTTP client can be swapped for a fake in tests or another
data source without touching the cache or orchestrator.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from whalewatch.markets.models import Period, PeriodMetrics, TraderRecord


@runtime_checkable
class WhaleDataProvider(Protocol):
    """Protocol for leaderboard and per-wallet profile data.

    Implementations raise ``UpstreamUnavailableError`` when a request fails.
    An address without any trading history is not an error: it yields a
    zeroed ``success`` record.
    """

    async def fetch_leaderboard_page(
        self, offset: int, page_size: int, period: Period
    ) -> list[TraderRecord]:
        """Fetch one ranked page. A page shorter than ``page_size`` means exhaustion."""
        ...

    async def fetch_profile(self, address: str, period: Period) -> PeriodMetrics:
        """Compute metrics for one address.

        May return ``status=pending`` when the computation is still running
        upstream; callers should ask again later.
        """
        ...

    async def fetch_positions(self, address: str) -> list[dict[str, Any]]:
        """Current open positions, passed through unchanged."""
        ...

    async def fetch_activity(self, address: str, limit: int) -> list[dict[str, Any]]:
        """Recent wallet activity, passed through unchanged."""
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...
