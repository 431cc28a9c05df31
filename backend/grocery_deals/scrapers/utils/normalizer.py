"""Data normalization utilities for vendor deal records."""

import math
import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from grocery_deals.scrapers.base import Category, DiscountType, Unit


# Vendor department names and common spellings mapped to canonical categories
CATEGORY_ALIASES = {
    "fruit": Category.PRODUCE,
    "fruits": Category.PRODUCE,
    "vegetables": Category.PRODUCE,
    "fresh produce": Category.PRODUCE,
    "meat & seafood": Category.MEAT,
    "meat and seafood": Category.MEAT,
    "poultry": Category.MEAT,
    "deli": Category.MEAT,
    "fish": Category.SEAFOOD,
    "dairy & eggs": Category.DAIRY,
    "eggs": Category.DAIRY,
    "cheese": Category.DAIRY,
    "bakery & bread": Category.BAKERY,
    "bread": Category.BAKERY,
    "frozen foods": Category.FROZEN,
    "drinks": Category.BEVERAGES,
    "beverage": Category.BEVERAGES,
    "snack": Category.SNACKS,
    "household essentials": Category.HOUSEHOLD,
    "cleaning": Category.HOUSEHOLD,
    "health & beauty": Category.PERSONAL_CARE,
    "pet": Category.PETS,
    "pet supplies": Category.PETS,
    "baby care": Category.BABY,
}

UNIT_ALIASES = {
    "lbs": Unit.LB,
    "pound": Unit.LB,
    "pounds": Unit.LB,
    "ounce": Unit.OZ,
    "ounces": Unit.OZ,
    "gram": Unit.G,
    "grams": Unit.G,
    "kilogram": Unit.KG,
    "ea": Unit.EACH,
    "pk": Unit.PACK,
    "pkg": Unit.PACK,
    "package": Unit.PACK,
    "ct": Unit.COUNT,
    "fl oz": Unit.FL_OZ,
    "floz": Unit.FL_OZ,
    "fluid ounce": Unit.FL_OZ,
    "liter": Unit.L,
    "litre": Unit.L,
    "gallon": Unit.GAL,
    "quart": Unit.QT,
    "pint": Unit.PT,
    "dz": Unit.DOZEN,
}

_CONTROL_CHARS = re.compile(r"[\u0000-\u001F\u007F-\u009F]")
_WHITESPACE = re.compile(r"\s+")
_LIMIT_PATTERN = re.compile(r"limit\s+(\d+)", re.IGNORECASE)

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%B %d, %Y", "%b %d, %Y")

TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
}


def normalize_price(value: Any) -> Optional[Decimal]:
    """Parse a vendor price into a non-negative Decimal.

    Handles numbers and strings like "$1.99", "1,234.50", "2.50/lb".

    Args:
        value: Raw price (str, int, float or Decimal)

    Returns:
        Decimal price value, or None if missing, negative or unparseable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        price = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "")
        match = re.search(r"-?\d+(?:\.\d+)?|-?\.\d+", text)
        if not match:
            return None
        try:
            price = Decimal(match.group(0))
        except InvalidOperation:
            return None

    if not price.is_finite() or price < 0:
        return None
    return price


def normalize_category(value: Any) -> Optional[Category]:
    """Map a category string onto the canonical vocabulary.

    Returns:
        Category, Category.OTHER for unknown non-empty values, or None if empty
    """
    if value is None:
        return None
    if isinstance(value, Category):
        return value

    text = sanitize_text(str(value)).lower()
    if not text:
        return None

    key = text.replace("-", "_").replace(" ", "_")
    try:
        return Category(key)
    except ValueError:
        pass
    return CATEGORY_ALIASES.get(text, Category.OTHER)


def normalize_unit(value: Any) -> Optional[Unit]:
    """Map a unit string onto the canonical vocabulary.

    Returns:
        Unit, or None if empty or unrecognized
    """
    if value is None:
        return None
    if isinstance(value, Unit):
        return value

    text = sanitize_text(str(value)).lower().rstrip(".")
    if not text:
        return None

    try:
        return Unit(text.replace(" ", "_"))
    except ValueError:
        return UNIT_ALIASES.get(text)


def sanitize_text(text: Any) -> str:
    """Strip control characters, collapse whitespace and trim.

    Returns:
        Cleaned text ("" for None)
    """
    if text is None:
        return ""
    cleaned = _CONTROL_CHARS.sub("", str(text))
    return _WHITESPACE.sub(" ", cleaned).strip()


def validate_image_url(url: Any) -> Optional[str]:
    """Return the URL if it is an absolute http(s) URL, else None."""
    if not url or not isinstance(url, str):
        return None
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc or " " in url:
        return None
    return url


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a vendor date into a timezone-aware datetime.

    Accepts datetime/date objects, ISO 8601 strings (with or without "Z"),
    RFC 2822 strings and a few US formats. Naive values are taken as UTC.

    Returns:
        datetime, or None if missing or unparseable
    """
    if value is None or value == "":
        return None

    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = _parse_loose_date(text)

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_loose_date(text: str) -> Optional[datetime]:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def calculate_discount_percentage(
    original: Optional[Decimal], sale: Optional[Decimal]
) -> Optional[Decimal]:
    """Calculate the discount percentage of a sale price.

    Args:
        original: Original price
        sale: Sale price

    Returns:
        ((original - sale) / original) * 100 rounded to 1 decimal place,
        or None if either price is missing or non-positive
    """
    original = normalize_price(original)
    sale = normalize_price(sale)
    if not original or not sale or original <= 0 or sale <= 0:
        return None
    percentage = (original - sale) / original * 100
    return percentage.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def determine_discount_type(description: Any) -> DiscountType:
    """Infer the promotion mechanism from its free-text description."""
    text = sanitize_text(description).lower()
    if "buy one get one" in text or "bogo" in text:
        return DiscountType.BOGO
    if "points" in text or "rewards" in text:
        return DiscountType.POINTS
    if "coupon" in text or "clip" in text:
        return DiscountType.COUPON
    return DiscountType.SALE


def extract_limit(restrictions: Any) -> Optional[int]:
    """Extract a purchase limit ("Limit 4 per household") from restriction text."""
    if not restrictions:
        return None
    match = _LIMIT_PATTERN.search(str(restrictions))
    return int(match.group(1)) if match else None


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Normalize a URL by removing tracking parameters.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL, or None if the URL is not absolute
    """
    url = validate_image_url(url)
    if not url:
        return None

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)
    filtered_params = {k: v for k, v in query_params.items() if k not in TRACKING_PARAMS}
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, "")
    )
