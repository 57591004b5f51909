"""Storage layer: SQLite (aiosqlite), Redis."""

from whalewatch.storage.database import Database
from whalewatch.storage.redis import close_redis, init_redis

__all__ = [
    "Database",
    "close_redis",
    "init_redis",
]
