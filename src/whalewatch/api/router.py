"""Top-level API router: mounts all domain routers under /api/v1."""

from fastapi import APIRouter

from whalewatch.api.routes import system, wallets, whales

api_router = APIRouter()
api_router.include_router(wallets.router, prefix="/wallets", tags=["wallets"])
api_router.include_router(whales.router, prefix="/whales", tags=["whales"])
api_router.include_router(system.router, prefix="/system", tags=["system"])
