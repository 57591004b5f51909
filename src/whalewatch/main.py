"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from whalewatch import __version__
from whalewatch.api.router import api_router
from whalewatch.config import get_settings
from whalewatch.core.dependencies import AppStateDep
from whalewatch.core.exceptions import StorageError, UpstreamUnavailableError, WatchListError
from whalewatch.core.logging import get_logger, setup_logging
from whalewatch.service import service_lifespan

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: wires every component before serving."""
    settings = get_settings()
    setup_logging(settings)

    async with service_lifespan(settings) as state:
        app.state.whalewatch = state
        yield


app = FastAPI(
    title="Whalewatch",
    description="Prediction-market whale leaderboard with cached per-period enrichment",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    logger.warning("Upstream unavailable", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.exception_handler(WatchListError)
async def watchlist_error_handler(request: Request, exc: WatchListError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=503, content={"detail": exc.message})


# Infrastructure (no prefix, not versioned)


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check: ok whenever the process is running."""
    return {"status": "ok"}


@app.get("/ready")
async def ready(state: AppStateDep) -> dict[str, str]:
    """Readiness check: verifies storage is reachable."""
    checks: dict[str, str] = {}
    try:
        await state.db.fetchval("SELECT 1")
        checks["db"] = "ok"
    except Exception:
        checks["db"] = "error"
    if state.redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await state.redis.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "error"
    status = "ready" if all(v != "error" for v in checks.values()) else "not_ready"
    return {"status": status, **checks}


# Domain API
app.include_router(api_router, prefix="/api/v1")
