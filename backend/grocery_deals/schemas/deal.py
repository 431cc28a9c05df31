"""Deal Pydantic schemas for API responses."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from grocery_deals.scrapers.base import Category, DiscountType, Unit


class DealResponse(BaseModel):
    """Scraped deal response schema."""

    model_config = ConfigDict(from_attributes=True)

    title: str
    store_id: int
    sale_price: Decimal
    original_price: Optional[Decimal] = None
    discount_percentage: Optional[Decimal] = None
    image_url: Optional[str] = None
    category: Optional[Category] = None
    unit: Optional[Unit] = None
    valid_until: Optional[datetime] = None
    external_id: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    restrictions: Optional[str] = None
    discount_type: DiscountType
    quantity: int = 1
    limit: Optional[int] = None
    metadata: Dict[str, Any] = {}
