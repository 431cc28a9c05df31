"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from grocery_deals.api.v1 import health, stores

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(stores.router, prefix="/stores", tags=["stores"])
