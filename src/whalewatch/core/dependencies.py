"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from whalewatch.config import Settings, get_settings
from whalewatch.processing.enrichment import EnrichmentOrchestrator
from whalewatch.processing.leaderboard import LeaderboardAdapter
from whalewatch.processing.watchlist import WatchListManager
from whalewatch.service import AppState

SettingsDep = Annotated[Settings, Depends(get_settings)]


async def get_app_state(request: Request) -> AppState:
    """Get AppState from app.state (set during lifespan)."""
    return request.app.state.whalewatch  # type: ignore[no-any-return]


AppStateDep = Annotated[AppState, Depends(get_app_state)]


def get_orchestrator(state: AppStateDep) -> EnrichmentOrchestrator:
    return state.orchestrator


def get_leaderboard(state: AppStateDep) -> LeaderboardAdapter:
    return state.leaderboard


def get_watchlist(state: AppStateDep) -> WatchListManager:
    return state.watchlist


OrchestratorDep = Annotated[EnrichmentOrchestrator, Depends(get_orchestrator)]
LeaderboardDep = Annotated[LeaderboardAdapter, Depends(get_leaderboard)]
WatchListDep = Annotated[WatchListManager, Depends(get_watchlist)]
