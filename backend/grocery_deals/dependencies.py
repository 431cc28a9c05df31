"""FastAPI dependency injection providers."""

from fastapi import Request

from grocery_deals.scrapers.scraper_service import DealScraperService


def get_deal_service(request: Request) -> DealScraperService:
    """Return the application-wide DealScraperService.

    The service is created in the application lifespan and stored on
    app.state; tests replace it through app.dependency_overrides.

    Usage:
        @router.get("/stores")
        async def list_stores(service: DealScraperService = Depends(get_deal_service)):
            return service.list_store_configs()
    """
    return request.app.state.deal_service
