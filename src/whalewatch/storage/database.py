"""Embedded SQLite store using aiosqlite.

Two record kinds live here: watched addresses and cached whale profile blobs
(one JSON document per address). Writes are not durable until ``flush()``
commits them; the single-row helpers flush by default, batch callers (the
legacy migration) pass ``commit=False`` and flush once at the end.

Timestamps are stored as integer epoch milliseconds, the format the legacy
JSON cache used.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from whalewatch.core.constants import SQLITE_MAX_VARIABLES
from whalewatch.core.exceptions import DatabaseConnectionError
from whalewatch.core.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS watched (
    address TEXT PRIMARY KEY,
    label TEXT,
    added_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS whales (
    address TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    last_updated INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def to_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return round(dt.timestamp() * 1000)


def from_millis(ms: int | float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=UTC)


class Database:
    """Async SQLite database wrapper using a single aiosqlite connection."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    async def connect(self) -> None:
        """Open the database file and create tables."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(self._path)
        except (OSError, aiosqlite.Error) as e:
            raise DatabaseConnectionError(f"Cannot open database {self._path}: {e}") from e
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.debug("Database opened", path=self._path)

    async def disconnect(self) -> None:
        """Flush pending writes and close the connection."""
        if self._conn:
            await self._conn.commit()
            await self._conn.close()
            self._conn = None
            logger.debug("Database closed", path=self._path)

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    async def execute(self, query: str, *args: Any) -> int:
        """Execute a write statement and return the affected row count."""
        conn = self._require_conn()
        async with conn.execute(query, args) as cursor:
            return cursor.rowcount

    async def fetch(self, query: str, *args: Any) -> list[aiosqlite.Row]:
        """Fetch multiple rows."""
        conn = self._require_conn()
        async with conn.execute(query, args) as cursor:
            return list(await cursor.fetchall())

    async def fetchrow(self, query: str, *args: Any) -> aiosqlite.Row | None:
        """Fetch a single row."""
        conn = self._require_conn()
        async with conn.execute(query, args) as cursor:
            return await cursor.fetchone()

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Fetch a single value."""
        row = await self.fetchrow(query, *args)
        return row[0] if row is not None else None

    async def flush(self) -> None:
        """Commit all pending writes to disk."""
        await self._require_conn().commit()

    async def rollback(self) -> None:
        """Discard writes made since the last flush."""
        await self._require_conn().rollback()

    # -------------------------------------------------------------------------
    # Watched addresses
    # -------------------------------------------------------------------------

    async def insert_watched(
        self,
        address: str,
        added_at: datetime,
        label: str | None = None,
        *,
        commit: bool = True,
    ) -> bool:
        """Insert a watched address, keeping the existing row if present.

        Returns:
            True if the address was newly inserted
        """
        inserted = await self.execute(
            "INSERT OR IGNORE INTO watched (address, label, added_at) VALUES (?, ?, ?)",
            address,
            label,
            to_millis(added_at),
        )
        if commit:
            await self.flush()
        return inserted > 0

    async def update_watched_label(
        self, address: str, label: str | None, *, commit: bool = True
    ) -> bool:
        """Set the label of an existing watched address."""
        updated = await self.execute(
            "UPDATE watched SET label = ? WHERE address = ?",
            label,
            address,
        )
        if commit:
            await self.flush()
        return updated > 0

    async def delete_watched(self, address: str, *, commit: bool = True) -> bool:
        deleted = await self.execute("DELETE FROM watched WHERE address = ?", address)
        if commit:
            await self.flush()
        return deleted > 0

    async def get_watched(self) -> list[aiosqlite.Row]:
        """All watched addresses, oldest first."""
        return await self.fetch(
            "SELECT address, label, added_at FROM watched ORDER BY added_at, address"
        )

    async def get_watched_one(self, address: str) -> aiosqlite.Row | None:
        return await self.fetchrow(
            "SELECT address, label, added_at FROM watched WHERE address = ?", address
        )

    async def count_watched(self) -> int:
        return int(await self.fetchval("SELECT COUNT(*) FROM watched") or 0)

    # -------------------------------------------------------------------------
    # Whale profile blobs
    # -------------------------------------------------------------------------

    async def get_whale(self, address: str) -> aiosqlite.Row | None:
        return await self.fetchrow(
            "SELECT address, data, last_updated FROM whales WHERE address = ?", address
        )

    async def get_whales(self, addresses: Iterable[str]) -> list[aiosqlite.Row]:
        """Fetch blobs for many addresses; missing addresses are simply absent."""
        unique = list(dict.fromkeys(addresses))
        rows: list[aiosqlite.Row] = []
        for chunk in _chunks(unique, SQLITE_MAX_VARIABLES):
            placeholders = ",".join("?" for _ in chunk)
            rows.extend(
                await self.fetch(
                    f"SELECT address, data, last_updated FROM whales WHERE address IN ({placeholders})",
                    *chunk,
                )
            )
        return rows

    async def replace_whale(
        self, address: str, data: str, last_updated: datetime, *, commit: bool = True
    ) -> None:
        """Insert or replace the blob for ``address``."""
        await self.execute(
            "INSERT OR REPLACE INTO whales (address, data, last_updated) VALUES (?, ?, ?)",
            address,
            data,
            to_millis(last_updated),
        )
        if commit:
            await self.flush()

    async def replace_whale_if_newer(
        self, address: str, data: str, last_updated: datetime, *, commit: bool = True
    ) -> bool:
        """Insert, or replace only when ``last_updated`` is newer than the stored row.

        Returns:
            True if a row was written
        """
        written = await self.execute(
            """
            INSERT INTO whales (address, data, last_updated) VALUES (?, ?, ?)
            ON CONFLICT(address) DO UPDATE SET
                data = excluded.data,
                last_updated = excluded.last_updated
            WHERE excluded.last_updated > whales.last_updated
            """,
            address,
            data,
            to_millis(last_updated),
        )
        if commit:
            await self.flush()
        return written > 0

    async def count_whales(self) -> int:
        return int(await self.fetchval("SELECT COUNT(*) FROM whales") or 0)

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    async def get_meta(self, key: str) -> str | None:
        value = await self.fetchval("SELECT value FROM meta WHERE key = ?", key)
        return str(value) if value is not None else None

    async def set_meta(self, key: str, value: str, *, commit: bool = True) -> None:
        await self.execute("INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", key, value)
        if commit:
            await self.flush()


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]
