"""Base scraper interface and canonical deal data structures.

All vendor scrapers inherit from BaseScraper and implement scrape_deals().
Shared fetching and normalization live in ScraperToolkit, which every
scraper receives rather than inherits.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import structlog

if TYPE_CHECKING:
    from grocery_deals.scrapers.toolkit import ScraperToolkit
    from grocery_deals.scrapers.utils.cancellation import CancellationToken


class Category(str, Enum):
    """Canonical grocery category vocabulary."""

    PRODUCE = "produce"
    MEAT = "meat"
    SEAFOOD = "seafood"
    DAIRY = "dairy"
    BAKERY = "bakery"
    PANTRY = "pantry"
    FROZEN = "frozen"
    BEVERAGES = "beverages"
    SNACKS = "snacks"
    HOUSEHOLD = "household"
    PERSONAL_CARE = "personal_care"
    BABY = "baby"
    PETS = "pets"
    OTHER = "other"


class Unit(str, Enum):
    """Canonical selling unit vocabulary."""

    LB = "lb"
    OZ = "oz"
    G = "g"
    KG = "kg"
    EACH = "each"
    BUNCH = "bunch"
    PACK = "pack"
    DOZEN = "dozen"
    FL_OZ = "fl_oz"
    ML = "ml"
    L = "l"
    GAL = "gal"
    QT = "qt"
    PT = "pt"
    COUNT = "count"


class DiscountType(str, Enum):
    """How a promotion is redeemed."""

    SALE = "sale"
    BOGO = "bogo"
    POINTS = "points"
    COUPON = "coupon"


@dataclass(frozen=True)
class StoreLocation:
    """Physical location used to pick a vendor store."""

    zip_code: str
    store_id: Optional[str] = None


@dataclass(frozen=True)
class StoreConfig:
    """Identity and access parameters for one retailer."""

    id: int
    name: str  # Chain display name, selects the vendor scraper
    base_url: str
    login_required: bool = False
    api_key: Optional[str] = None  # Opaque, vendor-specific credential string
    requires_location: bool = False
    default_location: Optional[StoreLocation] = None


@dataclass
class ScrapedDeal:
    """Normalized promotional item returned by all vendor scrapers."""

    title: str
    sale_price: Decimal
    store_id: int
    original_price: Optional[Decimal] = None
    discount_percentage: Optional[Decimal] = None
    image_url: Optional[str] = None
    category: Optional[Category] = None
    unit: Optional[Unit] = None
    valid_until: Optional[datetime] = None
    external_id: Optional[str] = None  # Vendor product ID
    url: Optional[str] = None
    description: Optional[str] = None
    restrictions: Optional[str] = None
    discount_type: DiscountType = DiscountType.SALE
    quantity: int = 1
    limit: Optional[int] = None  # Purchase limit parsed from restrictions
    metadata: dict = field(default_factory=dict)  # Vendor-specific extras

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.title:
            raise ValueError("title is required")
        if not isinstance(self.sale_price, Decimal) or not self.sale_price.is_finite():
            raise ValueError("sale_price must be a finite Decimal")
        if self.sale_price < 0:
            raise ValueError("sale_price must be non-negative")
        if self.original_price is not None and self.original_price < 0:
            raise ValueError("original_price must be non-negative")
        if self.category is not None:
            self.category = Category(self.category)
        if self.unit is not None:
            self.unit = Unit(self.unit)
        self.discount_type = DiscountType(self.discount_type)
        if self.quantity < 1:
            raise ValueError(f"Invalid quantity: {self.quantity}")
        if self.limit is not None and self.limit < 1:
            raise ValueError(f"Invalid limit: {self.limit}")


class BaseScraper(ABC):
    """Abstract base class for all vendor scrapers.

    A scraper is bound to one StoreConfig and reused for the life of the
    process, so anything it caches (auth token, resolved location) persists
    across scrape_deals() calls.
    """

    vendor: str = ""  # Must be overridden in subclass (e.g., "Kroger")

    def __init__(self, config: StoreConfig, toolkit: "ScraperToolkit"):
        """Initialize the scraper.

        Args:
            config: Store this scraper works for
            toolkit: Shared fetch/normalize helper (rate limiter, proxies, retries)
        """
        self.config = config
        self.name = config.name
        self.toolkit = toolkit
        self.logger = structlog.get_logger(__name__).bind(
            vendor=self.vendor, store=config.name, store_id=config.id
        )

    @abstractmethod
    async def scrape_deals(
        self, cancel: Optional["CancellationToken"] = None
    ) -> List[ScrapedDeal]:
        """Fetch and normalize every current deal for this store.

        Args:
            cancel: Optional token that aborts the scrape

        Returns:
            List of ScrapedDeal objects

        Raises:
            ScraperError: If authentication, location lookup or fetching fails
            ScrapeCancelledError: If the scrape was cancelled
        """
