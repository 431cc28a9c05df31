"""Pydantic schemas for the grocery deals API.

All request/response models are defined here for easy import.
"""

from grocery_deals.schemas.common import ApiResponse, PaginationMeta
from grocery_deals.schemas.deal import DealResponse
from grocery_deals.schemas.health import HealthCheckResponse
from grocery_deals.schemas.store import (
    ConnectionTestResponse,
    StoreResponse,
    StoreSyncResult,
    StoreSyncStatusResponse,
)

__all__ = [
    # Common
    "ApiResponse",
    "PaginationMeta",
    # Deal
    "DealResponse",
    # Store
    "ConnectionTestResponse",
    "StoreResponse",
    "StoreSyncResult",
    "StoreSyncStatusResponse",
    # Health
    "HealthCheckResponse",
]
