"""Whale cache, enrichment, and watch list endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from whalewatch.api.routes.wallets import parse_period
from whalewatch.core.dependencies import AppStateDep, OrchestratorDep, WatchListDep
from whalewatch.markets.models import CacheLookup, PeriodMetrics, WatchedAddress

router = APIRouter()

MAX_BATCH = 500


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class AddressBatchRequest(BaseModel):
    addresses: list[str] = Field(..., max_length=MAX_BATCH)
    period: str = Field(default="all", description="24h | 7d | 30d | all")


class SetWatchRequest(BaseModel):
    address: str = Field(..., min_length=1)
    watched: bool = True
    label: str | None = Field(default=None, description="Short label; empty string clears it")


class SetWatchResponse(BaseModel):
    address: str
    watched: bool
    entry: WatchedAddress | None = None


class EnrichResponse(BaseModel):
    period: str
    records: dict[str, PeriodMetrics]
    unresolved: list[str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/cache/bulk", response_model=dict[str, CacheLookup])
async def get_bulk_cache(body: AddressBatchRequest, state: AppStateDep) -> dict[str, CacheLookup]:
    """Cached metrics for many addresses at once; every address is in the result."""
    return await state.cache.bulk_lookup(body.addresses, parse_period(body.period))


@router.get("/watched", response_model=list[WatchedAddress])
async def get_watched_list(watchlist: WatchListDep) -> list[WatchedAddress]:
    return await watchlist.list()


@router.post("/watch", response_model=SetWatchResponse)
async def set_watch(body: SetWatchRequest, watchlist: WatchListDep) -> SetWatchResponse:
    entry = await watchlist.set_watch(body.address, body.watched, body.label)
    return SetWatchResponse(
        address=entry.address if entry else body.address.strip().lower(),
        watched=entry is not None,
        entry=entry,
    )


@router.post("/enrich", response_model=EnrichResponse)
async def enrich(body: AddressBatchRequest, orchestrator: OrchestratorDep) -> EnrichResponse:
    """Run one bulk check + fetch pass.

    Addresses listed in ``unresolved`` are still computing upstream (or
    failed); call again to pick them up.
    """
    period = parse_period(body.period)
    state = await orchestrator.resolve(body.addresses, period)
    return EnrichResponse(
        period=period.value,
        records=state.records,
        unresolved=state.unresolved(body.addresses),
    )
