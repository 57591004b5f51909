"""System status and config endpoints."""

from fastapi import APIRouter

from whalewatch.config import get_settings
from whalewatch.core.dependencies import AppStateDep

router = APIRouter()


@router.get("/status")
async def system_status(state: AppStateDep) -> dict[str, object]:
    return {
        "redis_enabled": state.redis is not None,
        "scheduler_running": state.scheduler is not None and state.scheduler.running,
        "background_tasks": state.tasks.active_count,
        "watched": await state.db.count_watched(),
        "cached_profiles": await state.db.count_whales(),
    }


@router.get("/config")
async def system_config() -> dict[str, object]:
    settings = get_settings()
    return {
        "env": settings.env,
        "leaderboard_max_limit": settings.leaderboard_max_limit,
        "profile_cache_ttl_seconds": settings.profile_cache_ttl_seconds,
        "poll_interval_seconds": settings.poll_interval_seconds,
        "poll_batch_size": settings.poll_batch_size,
        "watch_label_max_length": settings.watch_label_max_length,
    }
