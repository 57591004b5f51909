"""Incremental per-period enrichment of whale addresses.

Resolution of a batch of addresses for one period runs in three tiers:

1. Bulk check: one ``ProfileCache.bulk_lookup`` for the whole batch.
2. Fetch missing: one provider fetch per cache miss, concurrently and
   bounded. Successes are written through to the cache; ``pending`` leaves
   the address unresolved; failures get ``PeriodMetrics.unknown()`` so the
   caller can render something. Unknown records are never cached.
3. Poll: a ``PollSession`` keeps re-checking addresses that still lack a
   final record (at most ``batch_size`` per tick) until they resolve.

``resolve`` returns after one bounded pass over the misses. Nothing in this
module raises to the caller because of an upstream or cache failure; the
worst case is an address that stays unknown until a later poll tick.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field

from whalewatch.core.exceptions import StorageError, UpstreamUnavailableError
from whalewatch.core.logging import get_logger
from whalewatch.markets.base import WhaleDataProvider
from whalewatch.markets.models import (
    MetricsStatus,
    Period,
    PeriodMetrics,
    TraderRecord,
    normalize_address,
)
from whalewatch.processing.profile_cache import ProfileCache

logger = get_logger(__name__)

UpdateCallback = Callable[[dict[str, PeriodMetrics]], Awaitable[None]]


@dataclass
class EnrichmentState:
    """Caller-visible working set for one period.

    Records are replaced whole, never field by field.
    """

    period: Period
    records: dict[str, PeriodMetrics] = field(default_factory=dict)

    def seed_from_leaderboard(self, traders: Iterable[TraderRecord]) -> None:
        """Fill provisional all-time records from leaderboard rows for first paint."""
        if self.period is not Period.ALL:
            return
        for trader in traders:
            self.records.setdefault(trader.address, PeriodMetrics.from_trader(trader))

    def merge(self, address: str, metrics: PeriodMetrics) -> bool:
        """Merge one record; returns True if the visible record changed.

        - merging an identical record is a no-op
        - a final record is never downgraded to a non-final one
        - an error fallback never hides an existing record
        """
        address = normalize_address(address)
        current = self.records.get(address)
        if current == metrics:
            return False
        if current is not None:
            if current.is_final and not metrics.is_final:
                return False
            if metrics.status is MetricsStatus.ERROR:
                return False
        self.records[address] = metrics
        return True

    def needs_refresh(self, address: str) -> bool:
        """True while the address has no final record (missing, unknown, provisional)."""
        current = self.records.get(normalize_address(address))
        return current is None or not current.is_final

    def unresolved(self, addresses: Iterable[str]) -> list[str]:
        return [a for a in _normalize_all(addresses) if self.needs_refresh(a)]


class EnrichmentOrchestrator:
    """Resolves per-period metrics through the cache tiers described above."""

    def __init__(
        self,
        cache: ProfileCache,
        provider: WhaleDataProvider,
        *,
        concurrency: int = 5,
        fetch_timeout: float = 20.0,
    ) -> None:
        self._cache = cache
        self._provider = provider
        self._semaphore = asyncio.Semaphore(concurrency)
        self._fetch_timeout = fetch_timeout

    async def resolve(
        self,
        addresses: Iterable[str],
        period: Period,
        state: EnrichmentState | None = None,
    ) -> EnrichmentState:
        """Run bulk check and one fetch pass over the misses.

        Args:
            addresses: Addresses to resolve (normalized and de-duplicated)
            period: Period to resolve
            state: Existing working set to merge into; a new one is created
                when omitted

        Returns:
            The merged state. Addresses whose upstream is still computing are
            absent (or keep their provisional record).
        """
        state = state or EnrichmentState(period)
        wanted = _normalize_all(addresses)
        if not wanted:
            return state

        cached = await self.bulk_check(wanted, period)
        for address, metrics in cached.items():
            state.merge(address, metrics)

        missing = [a for a in wanted if a not in cached]
        fetched = await self.fetch_missing(missing, period)
        for address, metrics in fetched.items():
            state.merge(address, metrics)

        logger.info(
            "Enrichment pass complete",
            period=period.value,
            requested=len(wanted),
            cache_hits=len(cached),
            fetched=sum(1 for m in fetched.values() if m.is_success),
            failed=sum(1 for m in fetched.values() if m.status is MetricsStatus.ERROR),
            pending=len(missing) - len(fetched),
        )
        return state

    async def bulk_check(self, addresses: Sequence[str], period: Period) -> dict[str, PeriodMetrics]:
        """Cached metrics for the given addresses; a failed read counts as all misses."""
        try:
            lookups = await self._cache.bulk_lookup(addresses, period)
        except StorageError as e:
            logger.warning("Bulk cache check failed", period=period.value, error=str(e))
            return {}
        return {
            address: lookup.metrics
            for address, lookup in lookups.items()
            if lookup.cached and lookup.metrics is not None
        }

    async def fetch_missing(
        self, addresses: Sequence[str], period: Period
    ) -> dict[str, PeriodMetrics]:
        """Fetch each address from the provider; pending addresses are omitted."""
        if not addresses:
            return {}
        results = await asyncio.gather(*(self._fetch_one(a, period) for a in addresses))
        return {
            address: metrics
            for address, metrics in zip(addresses, results, strict=True)
            if metrics is not None
        }

    async def _fetch_one(self, address: str, period: Period) -> PeriodMetrics | None:
        try:
            metrics = await self._fetch_upstream(address, period)
        except UpstreamUnavailableError as e:
            logger.warning(
                "Profile fetch failed, using unknown",
                address=address[:10],
                period=period.value,
                error=str(e),
            )
            return PeriodMetrics.unknown()
        except Exception:
            logger.exception(
                "Unexpected profile fetch error, using unknown",
                address=address[:10],
                period=period.value,
            )
            return PeriodMetrics.unknown()

        if metrics.status is MetricsStatus.PENDING:
            return None
        if not metrics.is_success:
            return PeriodMetrics.unknown()

        try:
            await self._cache.put(address, period, metrics)
        except StorageError as e:
            # Still show the value; the next miss will fetch it again
            logger.warning("Profile cache write failed", address=address[:10], error=str(e))
        return metrics

    async def _fetch_upstream(self, address: str, period: Period) -> PeriodMetrics:
        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    self._provider.fetch_profile(address, period),
                    timeout=self._fetch_timeout,
                )
            except TimeoutError as e:
                raise UpstreamUnavailableError(
                    f"Profile fetch timed out after {self._fetch_timeout}s"
                ) from e

    async def fetch_profile(self, address: str, period: Period) -> PeriodMetrics:
        """Cache-first lookup of a single address.

        Successful upstream results are written through. ``pending`` is
        returned as-is.

        Raises:
            UpstreamUnavailableError: if the provider fails
        """
        address = normalize_address(address)
        try:
            cached = await self._cache.get(address, period)
        except StorageError as e:
            logger.warning("Cache read failed", address=address[:10], error=str(e))
            cached = None
        if cached is not None:
            return cached

        metrics = await self._fetch_upstream(address, period)
        if metrics.is_success:
            try:
                await self._cache.put(address, period, metrics)
            except StorageError as e:
                logger.warning("Profile cache write failed", address=address[:10], error=str(e))
        return metrics

    async def prewarm(self, address: str, periods: Iterable[Period] = tuple(Period)) -> None:
        """Resolve one address for every period so later reads hit the cache."""
        for period in periods:
            await self.resolve([address], period)
        logger.debug("Address pre-warmed", address=normalize_address(address)[:10])

    def start_poll(
        self,
        state: EnrichmentState,
        addresses: Iterable[str],
        *,
        interval: float = 3.0,
        batch_size: int = 50,
        on_update: UpdateCallback | None = None,
    ) -> PollSession:
        """Create and start a background poll for ``addresses``."""
        session = PollSession(
            self,
            state,
            addresses,
            interval=interval,
            batch_size=batch_size,
            on_update=on_update,
        )
        session.start()
        return session


class PollSession:
    """Repeating poll that fills in addresses still lacking a final record.

    Ticks never overlap: a tick in flight makes ``poll_once`` return
    immediately. ``stop()`` cancels the timer; a tick that is already running
    is allowed to finish, but its results are discarded.
    """

    def __init__(
        self,
        orchestrator: EnrichmentOrchestrator,
        state: EnrichmentState,
        addresses: Iterable[str],
        *,
        interval: float = 3.0,
        batch_size: int = 50,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self.state = state
        self.addresses = _normalize_all(addresses)
        self.interval = interval
        self.batch_size = batch_size
        self._on_update = on_update
        self._task: asyncio.Task[None] | None = None
        self._in_flight = False
        self._closed = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def complete(self) -> bool:
        """True once every address has a final record."""
        return not self.state.unresolved(self.addresses)

    def start(self) -> None:
        if self._closed:
            raise RuntimeError("Poll session already stopped")
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"poll:{self.state.period.value}")

    async def stop(self) -> None:
        """Cancel the repeating timer; results of an in-flight tick are dropped."""
        self._closed = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Poll stopped", period=self.state.period.value)

    async def _run(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.interval)
            # Shielded so cancelling the timer doesn't abort fetches mid-flight
            await asyncio.shield(self.poll_once())
            if self.complete:
                logger.debug("Poll complete", period=self.state.period.value)
                return

    async def poll_once(self) -> dict[str, PeriodMetrics]:
        """Run one tick and return the records that changed."""
        if self._in_flight or self._closed:
            return {}
        self._in_flight = True
        try:
            return await self._tick()
        except Exception:
            logger.exception("Poll tick failed", period=self.state.period.value)
            return {}
        finally:
            self._in_flight = False

    async def _tick(self) -> dict[str, PeriodMetrics]:
        period = self.state.period
        targets = self.state.unresolved(self.addresses)[: self.batch_size]
        if not targets:
            return {}

        found = await self._orchestrator.bulk_check(targets, period)
        remaining = [a for a in targets if a not in found]
        fetched = await self._orchestrator.fetch_missing(remaining, period)

        if self._closed:
            logger.debug("Discarding poll results after stop", period=period.value)
            return {}

        updates: dict[str, PeriodMetrics] = {}
        for address, metrics in {**fetched, **found}.items():
            if self.state.merge(address, metrics):
                updates[address] = metrics

        if updates:
            logger.debug("Poll merged updates", period=period.value, count=len(updates))
            if self._on_update is not None:
                await self._on_update(updates)
        return updates


def _normalize_all(addresses: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(normalize_address(a) for a in addresses if a and a.strip()))
