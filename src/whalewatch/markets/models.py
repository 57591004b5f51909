"""Whale data models shared by the provider, cache, and enrichment layers.

Python attributes are snake_case; the JSON form (HTTP responses and stored
profile blobs) is camelCase so that blobs written by the legacy JSON-file
cache load without conversion.

Unresolved metrics are ``None`` while a computation is still running. A
fetch that failed outright is reported as a zeroed record with
``status=error``; the status, not the numbers, marks it as unknown.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Period(str, Enum):
    """Time window over which metrics are aggregated."""

    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"
    ALL = "all"

    @property
    def api_value(self) -> str:
        """Window name used by the Data API leaderboard."""
        return _API_VALUES[self]

    def window(self) -> timedelta | None:
        """Length of the window, or None for all-time."""
        return _WINDOWS[self]

    def start(self, now: datetime | None = None) -> datetime | None:
        """Start of the window relative to ``now``."""
        window = self.window()
        if window is None:
            return None
        return (now or datetime.now(UTC)) - window

    @classmethod
    def parse(cls, value: str | Period) -> Period:
        """Accept either the display value ("7d") or the API value ("WEEK")."""
        if isinstance(value, Period):
            return value
        raw = value.strip()
        for period in cls:
            if raw.lower() == period.value or raw.upper() == period.api_value:
                return period
        raise ValueError(f"Unknown period: {value!r}")


_API_VALUES = {
    Period.DAY: "DAY",
    Period.WEEK: "WEEK",
    Period.MONTH: "MONTH",
    Period.ALL: "ALL",
}

_WINDOWS: dict[Period, timedelta | None] = {
    Period.DAY: timedelta(hours=24),
    Period.WEEK: timedelta(days=7),
    Period.MONTH: timedelta(days=30),
    Period.ALL: None,
}


class MetricsStatus(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    ERROR = "error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_address(address: str) -> str:
    return address.strip().lower()


class TraderRecord(_CamelModel):
    """One leaderboard row."""

    address: str = Field(min_length=1)
    rank: int = Field(ge=1)
    pnl: float = 0.0
    volume: float = 0.0
    user_name: str | None = None
    x_username: str | None = Field(default=None, alias="xUsername")
    profile_image: str | None = None
    verified_badge: bool | None = None
    trades: int | None = None
    positions: int | None = None

    @field_validator("address")
    @classmethod
    def lowercase_address(cls, v: str) -> str:
        return normalize_address(v)


class PeriodMetrics(_CamelModel):
    """Performance metrics for one (address, period) pair."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    pnl: float = 0.0
    volume: float = 0.0
    trade_count: int | None = Field(default=None, ge=0)
    trade_count_display: str | None = None
    win_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    smart_score: int | None = Field(default=None, ge=0, le=100)
    status: MetricsStatus = MetricsStatus.SUCCESS
    from_leaderboard: bool = False

    @classmethod
    def unknown(cls) -> PeriodMetrics:
        """Zeroed fallback used when a fetch fails. Never cached."""
        return cls(trade_count=0, win_rate=0.0, smart_score=0, status=MetricsStatus.ERROR)

    @classmethod
    def pending(cls) -> PeriodMetrics:
        """Upstream is still computing; poll again later."""
        return cls(status=MetricsStatus.PENDING)

    @classmethod
    def from_trader(cls, trader: TraderRecord) -> PeriodMetrics:
        """Provisional all-time record built from a leaderboard row."""
        return cls(
            pnl=trader.pnl,
            volume=trader.volume,
            trade_count=trader.trades,
            status=MetricsStatus.PENDING,
            from_leaderboard=True,
        )

    @property
    def is_success(self) -> bool:
        return self.status is MetricsStatus.SUCCESS

    @property
    def is_final(self) -> bool:
        """Fully enriched: no further polling needed."""
        return self.is_success and not self.from_leaderboard


class CacheEntry(_CamelModel):
    """Durable per-address profile blob; periods accumulate independently."""

    address: str
    periods: dict[str, PeriodMetrics] = Field(default_factory=dict)
    period_updated: dict[str, datetime] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CacheLookup(_CamelModel):
    """Result of a bulk cache check for one address."""

    cached: bool
    metrics: PeriodMetrics | None = None


class WatchedAddress(_CamelModel):
    address: str
    label: str | None = None
    added_at: datetime
