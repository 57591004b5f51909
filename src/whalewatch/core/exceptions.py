"""Custom exceptions for whalewatch."""


class WhalewatchError(Exception):
    """Base exception for all whalewatch errors."""

    def __init__(self, message: str, *args: object) -> None:
        self.message = message
        super().__init__(message, *args)


# Market data errors
class MarketError(WhalewatchError):
    """Base error for the trading-data provider layer."""


class UpstreamUnavailableError(MarketError):
    """Provider fetch failed or timed out."""


# Storage errors
class StorageError(WhalewatchError):
    """Base error for storage layer."""


class DatabaseConnectionError(StorageError):
    """Failed to open the SQLite database."""


class RedisConnectionError(StorageError):
    """Failed to connect to Redis."""


# Migration errors
class MigrationError(WhalewatchError):
    """Base error for legacy data migration."""


class LegacyParseError(MigrationError):
    """A single legacy file could not be read or parsed."""


# Watch list errors
class WatchListError(WhalewatchError):
    """Base error for watch list operations."""


class InvalidAddressError(WatchListError):
    """Address is empty or malformed."""


class InvalidLabelError(WatchListError):
    """Label exceeds the allowed length."""
