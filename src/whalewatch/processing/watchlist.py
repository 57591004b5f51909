"""Operator watch list of whale addresses.

Watched addresses live in the ``watched`` table. Marking an address as
watched spawns a detached pre-warm so its per-period metrics are already in
the profile cache the next time anyone looks; the call itself returns as soon
as the row is written.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from whalewatch.core.constants import WATCH_LABEL_MAX_LENGTH
from whalewatch.core.exceptions import InvalidAddressError, InvalidLabelError
from whalewatch.core.logging import get_logger
from whalewatch.markets.models import Period, WatchedAddress, normalize_address
from whalewatch.storage.database import from_millis

if TYPE_CHECKING:
    import aiosqlite

    from whalewatch.core.tasks import TaskSupervisor
    from whalewatch.processing.enrichment import EnrichmentOrchestrator
    from whalewatch.storage.database import Database

logger = get_logger(__name__)


class WatchListManager:
    """Add, relabel, remove and list watched addresses."""

    def __init__(
        self,
        db: Database,
        orchestrator: EnrichmentOrchestrator | None = None,
        tasks: TaskSupervisor | None = None,
        label_max_length: int = WATCH_LABEL_MAX_LENGTH,
    ) -> None:
        """Initialize the manager.

        Args:
            db: Connected database
            orchestrator: Used to pre-warm newly watched addresses. Without it
                (or without ``tasks``) no pre-warm happens.
            tasks: Supervisor that owns the detached pre-warm tasks
            label_max_length: Longest label accepted
        """
        self.db = db
        self._orchestrator = orchestrator
        self._tasks = tasks
        self.label_max_length = label_max_length

    async def list(self) -> list[WatchedAddress]:
        """All watched addresses, oldest first."""
        rows = await self.db.get_watched()
        return [_row_to_watched(row) for row in rows]

    async def get(self, address: str) -> WatchedAddress | None:
        row = await self.db.get_watched_one(self._validate_address(address))
        return _row_to_watched(row) if row is not None else None

    async def set_watch(
        self, address: str, watched: bool, label: str | None = None
    ) -> WatchedAddress | None:
        """Watch or unwatch ``address``.

        Watching an already watched address keeps its original ``added_at``;
        a given label replaces the stored one (an empty label clears it).
        Unwatching an address that isn't watched is a no-op.

        Returns:
            The stored row, or None after an unwatch

        Raises:
            InvalidAddressError: if the address is empty
            InvalidLabelError: if the label is too long
        """
        address = self._validate_address(address)

        if not watched:
            removed = await self.db.delete_watched(address)
            if removed:
                logger.info("Address unwatched", address=address[:10])
            return None

        clean_label = self._validate_label(label)
        inserted = await self.db.insert_watched(
            address, datetime.now(UTC), clean_label, commit=False
        )
        if label is not None and not inserted:
            await self.db.update_watched_label(address, clean_label, commit=False)
        await self.db.flush()

        if inserted:
            logger.info("Address watched", address=address[:10], label=clean_label)
            self._spawn_prewarm(address)

        row = await self.db.get_watched_one(address)
        return _row_to_watched(row) if row is not None else None

    async def update_label(self, address: str, label: str | None) -> WatchedAddress | None:
        """Set the label of ``address``, watching it first if needed."""
        return await self.set_watch(address, True, label if label is not None else "")

    async def refresh_stale(self) -> int:
        """Re-resolve every watched address for every period.

        Only cache misses (including expired periods) reach the provider.

        Returns:
            Number of watched addresses processed
        """
        if self._orchestrator is None:
            return 0
        addresses = [w.address for w in await self.list()]
        if not addresses:
            return 0
        for period in Period:
            await self._orchestrator.resolve(addresses, period)
        return len(addresses)

    def _spawn_prewarm(self, address: str) -> None:
        if self._orchestrator is None or self._tasks is None:
            return
        self._tasks.spawn(self._orchestrator.prewarm(address), name=f"prewarm:{address}")

    @staticmethod
    def _validate_address(address: str) -> str:
        normalized = normalize_address(address or "")
        if not normalized:
            raise InvalidAddressError("Address must not be empty")
        return normalized

    def _validate_label(self, label: str | None) -> str | None:
        if label is None:
            return None
        label = label.strip()
        if len(label) > self.label_max_length:
            raise InvalidLabelError(
                f"Label must be at most {self.label_max_length} characters, got {len(label)}"
            )
        return label or None


def _row_to_watched(row: aiosqlite.Row) -> WatchedAddress:
    return WatchedAddress(
        address=row["address"],
        label=row["label"],
        added_at=from_millis(row["added_at"]),
    )
