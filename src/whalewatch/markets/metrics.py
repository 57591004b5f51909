"""Per-period metric derivation from raw Data API rows."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from whalewatch.core.constants import (
    SMART_SCORE_FULL_ACTIVITY_TRADES,
    SMART_SCORE_FULL_ROI,
    SMART_SCORE_WEIGHT_ACTIVITY,
    SMART_SCORE_WEIGHT_EFFICIENCY,
    SMART_SCORE_WEIGHT_WIN_RATE,
    TRADE_COUNT_CAP,
)


def compute_smart_score(pnl: float, volume: float, win_rate: float, trade_count: int) -> int:
    """Blend win rate, capital efficiency and activity into a 0-100 score.

    Sub-signals (weighted):
    1. Win rate (0.40): fraction of profitable closed positions
    2. Efficiency (0.35): pnl / volume, saturating at 10% ROI; losses score 0
    3. Activity (0.25): log-scaled trade count, saturating at 1000 trades
    """
    if trade_count <= 0 and volume <= 0:
        return 0

    efficiency = 0.0
    if volume > 0 and pnl > 0:
        efficiency = min(1.0, (pnl / volume) / SMART_SCORE_FULL_ROI)

    activity = min(
        1.0, math.log10(trade_count + 1) / math.log10(SMART_SCORE_FULL_ACTIVITY_TRADES + 1)
    )

    score = (
        SMART_SCORE_WEIGHT_WIN_RATE * max(0.0, min(1.0, win_rate))
        + SMART_SCORE_WEIGHT_EFFICIENCY * efficiency
        + SMART_SCORE_WEIGHT_ACTIVITY * activity
    )
    return round(score * 100)


def compute_win_rate(
    closed_positions: Iterable[dict[str, Any]], since: datetime | None = None
) -> float:
    """Fraction of closed positions with positive realized PnL.

    Positions closed before ``since`` are ignored. No positions → 0.0.
    """
    wins = 0
    total = 0
    for pos in closed_positions:
        if since is not None:
            closed_at = _parse_timestamp(pos.get("timestamp") or pos.get("endDate"))
            if closed_at is None or closed_at < since:
                continue
        total += 1
        if float(pos.get("realizedPnl", 0) or 0) > 0:
            wins += 1
    return wins / total if total else 0.0


def trade_count_display(truncated: bool) -> str | None:
    """Human string for counts cut off by the upstream offset limit."""
    if truncated:
        return f"> {TRADE_COUNT_CAP}"
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, int | float):
        # Data API mixes seconds and milliseconds
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (ValueError, OSError):
            return None
    if isinstance(value, str):
        if value.isdigit():
            return _parse_timestamp(int(value))
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None
