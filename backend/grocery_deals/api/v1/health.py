"""Health check endpoint."""

from fastapi import APIRouter, Depends

from grocery_deals.config import settings
from grocery_deals.dependencies import get_deal_service
from grocery_deals.schemas import HealthCheckResponse
from grocery_deals.scrapers.scraper_service import DealScraperService

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(service: DealScraperService = Depends(get_deal_service)):
    """Return service health status.

    Reports the registered chains, the configured store count and the
    number of cached entries. Never touches vendor APIs.
    """
    return HealthCheckResponse(
        status="ok",
        environment=settings.ENVIRONMENT,
        chains=service.factory.get_registered_chains(),
        stores=len(service.list_store_configs()),
        cache_entries=len(service.cache),
    )
