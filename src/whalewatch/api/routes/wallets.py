"""Wallet endpoints: leaderboard, per-period profile, positions, activity."""

from typing import Any

from fastapi import APIRouter, HTTPException, Query

from whalewatch.core.constants import DEFAULT_ACTIVITY_LIMIT, LEADERBOARD_HARD_LIMIT
from whalewatch.core.dependencies import AppStateDep, LeaderboardDep, OrchestratorDep
from whalewatch.markets.models import Period, PeriodMetrics, TraderRecord, normalize_address

router = APIRouter()


def parse_period(value: str) -> Period:
    try:
        return Period.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def _require_address(address: str) -> str:
    normalized = normalize_address(address)
    if not normalized:
        raise HTTPException(status_code=422, detail="Address must not be empty")
    return normalized


@router.get("/leaderboard", response_model=list[TraderRecord])
async def get_leaderboard(
    leaderboard: LeaderboardDep,
    limit: int = Query(default=200, ge=1, description=f"Clamped to {LEADERBOARD_HARD_LIMIT}"),
    period: str = Query(default="all", description="24h | 7d | 30d | all (or DAY/WEEK/MONTH/ALL)"),
) -> list[TraderRecord]:
    return await leaderboard.get_top_traders(limit, parse_period(period))


@router.get("/{address}/profile", response_model=PeriodMetrics)
async def get_profile(
    address: str,
    orchestrator: OrchestratorDep,
    period: str = Query(default="all"),
) -> PeriodMetrics:
    """Cache-first metrics for one wallet; ``status`` is ``pending`` while computing."""
    return await orchestrator.fetch_profile(_require_address(address), parse_period(period))


@router.get("/{address}/positions")
async def get_positions(address: str, state: AppStateDep) -> list[dict[str, Any]]:
    return await state.provider.fetch_positions(_require_address(address))


@router.get("/{address}/activity")
async def get_activity(
    address: str,
    state: AppStateDep,
    limit: int = Query(default=DEFAULT_ACTIVITY_LIMIT, ge=1, le=500),
) -> list[dict[str, Any]]:
    return await state.provider.fetch_activity(_require_address(address), limit)
