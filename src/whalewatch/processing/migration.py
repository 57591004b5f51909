"""One-shot import of the legacy JSON-file data into SQLite.

Legacy layout under the data directory::

    watched_addresses.json     list of addresses (strings or objects)
    whales/<address>.json      one profile blob per address

The import is safe to run repeatedly. Watched rows are insert-or-ignore,
profile rows are only replaced by a strictly newer file, and a completion
marker in the ``meta`` table turns later runs into no-ops unless forced.
Everything is committed with a single flush at the end.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import aiosqlite
import orjson

from whalewatch.core.constants import (
    LEGACY_WATCHED_FILE,
    LEGACY_WHALES_DIR,
    MIGRATION_MARKER_KEY,
    WATCH_LABEL_MAX_LENGTH,
)
from whalewatch.core.exceptions import LegacyParseError, MigrationError
from whalewatch.core.logging import get_logger
from whalewatch.markets.models import normalize_address
from whalewatch.storage.database import Database, from_millis

logger = get_logger(__name__)


@dataclass(frozen=True)
class LegacyProfileFile:
    name: str
    content: bytes
    modified_at: datetime

    @property
    def address(self) -> str:
        return normalize_address(Path(self.name).stem)


class LegacySource(Protocol):
    """Where legacy data is read from."""

    def read_watched(self) -> list[Any]:
        """Raw watch-list entries; empty if there is no watch-list file.

        Raises:
            LegacyParseError: if the file exists but cannot be parsed
        """
        ...

    def profile_names(self) -> list[str]:
        """Names of the profile files, sorted."""
        ...

    def read_profile(self, name: str) -> LegacyProfileFile:
        """Read one profile file.

        Raises:
            LegacyParseError: if the file cannot be read
        """
        ...


class FileSystemLegacySource:
    """Reads the legacy layout from a directory on disk."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.watched_file = self.data_dir / LEGACY_WATCHED_FILE
        self.whales_dir = self.data_dir / LEGACY_WHALES_DIR

    def read_watched(self) -> list[Any]:
        if not self.watched_file.is_file():
            logger.info("No legacy watch list found", path=str(self.watched_file))
            return []
        try:
            data = orjson.loads(self.watched_file.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            raise LegacyParseError(f"Cannot parse {self.watched_file}: {e}") from e
        if not isinstance(data, list):
            raise LegacyParseError(f"{self.watched_file} is not a JSON array")
        return data

    def profile_names(self) -> list[str]:
        if not self.whales_dir.is_dir():
            logger.info("No legacy whales directory found", path=str(self.whales_dir))
            return []
        return sorted(p.name for p in self.whales_dir.glob("*.json") if p.is_file())

    def read_profile(self, name: str) -> LegacyProfileFile:
        path = self.whales_dir / name
        try:
            content = path.read_bytes()
            mtime = path.stat().st_mtime
        except OSError as e:
            raise LegacyParseError(f"Cannot read {path}: {e}") from e
        return LegacyProfileFile(
            name=name,
            content=content,
            modified_at=datetime.fromtimestamp(mtime, tz=UTC),
        )


@dataclass
class MigrationReport:
    skipped: bool = False
    watched_seen: int = 0
    watched_inserted: int = 0
    profiles_seen: int = 0
    profiles_written: int = 0
    profiles_unchanged: int = 0
    failures: int = 0
    duration_seconds: float = 0.0


class MigrationAdapter:
    """Imports a ``LegacySource`` into the database."""

    def __init__(self, db: Database, source: LegacySource) -> None:
        self.db = db
        self.source = source

    async def is_migrated(self) -> bool:
        return await self.db.get_meta(MIGRATION_MARKER_KEY) is not None

    async def run(self, force: bool = False) -> MigrationReport:
        """Import watched addresses and profile blobs.

        Args:
            force: Run even when the completion marker is present

        Raises:
            MigrationError: if the database rejects a write (nothing is committed)
        """
        report = MigrationReport()
        if not force and await self.is_migrated():
            logger.info("Legacy data already migrated, skipping")
            report.skipped = True
            return report

        start = time.monotonic()
        try:
            await self._migrate_watched(report)
            await self._migrate_profiles(report)
            await self.db.set_meta(
                MIGRATION_MARKER_KEY, datetime.now(UTC).isoformat(), commit=False
            )
            await self.db.flush()
        except aiosqlite.Error as e:
            await self.db.rollback()
            raise MigrationError(f"Migration aborted: {e}") from e
        report.duration_seconds = round(time.monotonic() - start, 3)

        logger.info(
            "Legacy migration complete",
            watched_inserted=report.watched_inserted,
            profiles_written=report.profiles_written,
            profiles_unchanged=report.profiles_unchanged,
            failures=report.failures,
            duration_seconds=report.duration_seconds,
        )
        return report

    async def _migrate_watched(self, report: MigrationReport) -> None:
        try:
            entries = self.source.read_watched()
        except LegacyParseError as e:
            logger.warning("Skipping legacy watch list", error=str(e))
            report.failures += 1
            return

        now = datetime.now(UTC)
        for raw in entries:
            report.watched_seen += 1
            parsed = _parse_watched_entry(raw)
            if parsed is None:
                logger.warning("Skipping malformed watch-list entry", entry=repr(raw)[:80])
                report.failures += 1
                continue
            address, label, added_at = parsed
            if await self.db.insert_watched(address, added_at or now, label, commit=False):
                report.watched_inserted += 1

    async def _migrate_profiles(self, report: MigrationReport) -> None:
        for name in self.source.profile_names():
            report.profiles_seen += 1
            try:
                profile = self.source.read_profile(name)
                _validate_profile(profile)
            except LegacyParseError as e:
                logger.warning("Skipping legacy profile", file=name, error=str(e))
                report.failures += 1
                continue

            written = await self.db.replace_whale_if_newer(
                profile.address,
                profile.content.decode("utf-8"),
                profile.modified_at,
                commit=False,
            )
            if written:
                report.profiles_written += 1
            else:
                report.profiles_unchanged += 1

            if report.profiles_seen % 100 == 0:
                logger.info("Migrating profiles", processed=report.profiles_seen)


def _validate_profile(profile: LegacyProfileFile) -> None:
    if not profile.address:
        raise LegacyParseError(f"{profile.name} has no address in its name")
    try:
        data = orjson.loads(profile.content)
    except orjson.JSONDecodeError as e:
        raise LegacyParseError(f"{profile.name} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LegacyParseError(f"{profile.name} is not a JSON object")


def _parse_watched_entry(raw: Any) -> tuple[str, str | None, datetime | None] | None:
    """Accept a bare address or ``{"address", "label"?, "addedAt"?}``."""
    if isinstance(raw, str):
        address = normalize_address(raw)
        return (address, None, None) if address else None
    if not isinstance(raw, dict) or not isinstance(raw.get("address"), str):
        return None

    address = normalize_address(raw["address"])
    if not address:
        return None

    label = raw.get("label")
    if not isinstance(label, str) or not label.strip():
        label = None
    elif len(label.strip()) > WATCH_LABEL_MAX_LENGTH:
        logger.warning("Dropping over-long legacy label", address=address[:10], label=label)
        label = None
    else:
        label = label.strip()

    return address, label, _parse_added_at(raw.get("addedAt"))


def _parse_added_at(value: Any) -> datetime | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return from_millis(value)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None
