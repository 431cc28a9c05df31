"""Store Pydantic schemas for API responses."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from grocery_deals.scrapers.scraper_service import SyncState


class StoreSyncStatusResponse(BaseModel):
    """Last sync result of a store."""

    model_config = ConfigDict(from_attributes=True)

    store_id: int
    status: SyncState
    last_sync: Optional[datetime] = None
    error_message: Optional[str] = None
    deals_count: int = 0


class StoreResponse(BaseModel):
    """Configured store with its sync status."""

    id: int
    name: str
    base_url: str
    login_required: bool
    requires_location: bool
    zip_code: Optional[str] = None
    location_id: Optional[str] = None
    has_credentials: bool  # Credentials themselves are never exposed
    sync: StoreSyncStatusResponse


class StoreSyncResult(BaseModel):
    """Per-store outcome of a sync request."""

    store_id: int
    status: SyncState
    deals_count: int = 0
    error_message: Optional[str] = None


class ConnectionTestResponse(BaseModel):
    """Result of a store connection test."""

    success: bool
