"""Stores API endpoints."""

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status

from grocery_deals.core.exceptions import StoreNotFoundError, StoreScrapeError
from grocery_deals.dependencies import get_deal_service
from grocery_deals.schemas import (
    ApiResponse,
    ConnectionTestResponse,
    DealResponse,
    PaginationMeta,
    StoreResponse,
    StoreSyncResult,
    StoreSyncStatusResponse,
)
from grocery_deals.scrapers.base import ScrapedDeal, StoreConfig
from grocery_deals.scrapers.scraper_service import DealScraperService

router = APIRouter()


def _store_response(config: StoreConfig, service: DealScraperService) -> StoreResponse:
    location = config.default_location
    return StoreResponse(
        id=config.id,
        name=config.name,
        base_url=config.base_url,
        login_required=config.login_required,
        requires_location=config.requires_location,
        zip_code=location.zip_code if location else None,
        location_id=location.store_id if location else None,
        has_credentials=bool(config.api_key),
        sync=StoreSyncStatusResponse.model_validate(service.get_sync_status(config.id)),
    )


def _discount_order(deal: ScrapedDeal):
    return (deal.discount_percentage is None, -(deal.discount_percentage or 0))


def _sync_result(store_id: int, service: DealScraperService) -> StoreSyncResult:
    sync_status = service.get_sync_status(store_id)
    return StoreSyncResult(
        store_id=store_id,
        status=sync_status.status,
        deals_count=sync_status.deals_count,
        error_message=sync_status.error_message,
    )


@router.get("", response_model=ApiResponse)
async def list_stores(service: DealScraperService = Depends(get_deal_service)):
    """List all configured stores with their last sync status."""
    stores = [_store_response(config, service) for config in service.list_store_configs()]
    return ApiResponse(status="success", data=stores)


@router.post("/sync", response_model=ApiResponse)
async def sync_all_stores(service: DealScraperService = Depends(get_deal_service)):
    """Scrape every configured store afresh, sequentially.

    A failing store does not stop the others; its result carries the error.
    """
    results = await service.scrape_deals_for_all_stores(refresh=True)
    return ApiResponse(
        status="success",
        data=[_sync_result(store_id, service) for store_id in results],
    )


@router.get("/{store_id}/deals", response_model=ApiResponse)
async def get_store_deals(
    store_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=200, description="Deals per page"),
    service: DealScraperService = Depends(get_deal_service),
):
    """Get current deals for a store.

    Served from cache when fresh; otherwise the store is scraped first.
    Ordered by discount percentage, largest first; deals without one come last.
    """
    try:
        deals = await service.scrape_deals_for_store(store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreScrapeError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    deals = sorted(deals, key=_discount_order)
    total = len(deals)
    start = (page - 1) * limit
    items = [DealResponse.model_validate(deal) for deal in deals[start : start + limit]]

    return ApiResponse(
        status="success",
        data=items,
        meta=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.post("/{store_id}/sync", response_model=ApiResponse)
async def sync_store(
    store_id: int,
    service: DealScraperService = Depends(get_deal_service),
):
    """Force a fresh scrape of one store.

    On failure the previously cached deals stay in place and the store's
    sync status records the error.
    """
    try:
        await service.scrape_deals_for_store(store_id, refresh=True)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreScrapeError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return ApiResponse(status="success", data=_sync_result(store_id, service))


@router.post("/{store_id}/test", response_model=ConnectionTestResponse)
async def test_store_connection(
    store_id: int,
    service: DealScraperService = Depends(get_deal_service),
):
    """Check that a store can be scraped and returns deals."""
    try:
        success = await service.test_store_connection(store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return ConnectionTestResponse(success=success)
