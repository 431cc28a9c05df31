"""Shared fetch and normalization helper composed into every vendor scraper.

ScraperToolkit is the single choke point for vendor network traffic: every
request acquires a rate-limit token, goes out through the current proxy with
browser-like headers, and is retried with exponential backoff. It also turns
raw vendor records into validated ScrapedDeal objects.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

import httpx
import structlog
from tenacity import RetryError

from grocery_deals.core.exceptions import FetchError
from grocery_deals.scrapers.base import DiscountType, ScrapedDeal
from grocery_deals.scrapers.utils.cache import Cache
from grocery_deals.scrapers.utils.cancellation import CancellationToken, sleep
from grocery_deals.scrapers.utils.normalizer import (
    calculate_discount_percentage,
    normalize_category,
    normalize_price,
    normalize_unit,
    normalize_url,
    parse_date,
    sanitize_text,
    validate_image_url,
)
from grocery_deals.scrapers.utils.proxy_manager import ProxyManager
from grocery_deals.scrapers.utils.rate_limiter import RateLimiter
from grocery_deals.scrapers.utils.retry import build_retrying
from grocery_deals.scrapers.utils.user_agents import DEFAULT_USER_AGENT, get_browser_headers

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float, Optional[CancellationToken]], Awaitable[None]]


class ScraperToolkit:
    """Rate-limited, proxied, retrying HTTP access plus deal normalization.

    One toolkit belongs to one scraper instance. Its rate limiter and proxy
    manager are private; the cache may be shared.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        store_id: Optional[int] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[Cache] = None,
        proxy_manager: Optional[ProxyManager] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        page_size: int = 50,
        max_pages: int = 5,
        location_ttl: float = 86400.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep_func: SleepFunc = sleep,
    ):
        """Initialize toolkit.

        Args:
            name: Vendor/store name used in logs and errors
            base_url: Store website base URL
            store_id: Store id stamped on records that do not carry one
            rate_limiter: Token bucket for outbound requests (private default)
            cache: Cache reference (private default)
            proxy_manager: Proxy pool (empty private default)
            max_retries: Attempts per request, including the first
            retry_delay: Backoff base in seconds, doubled per failed attempt
            timeout: Per-attempt request timeout in seconds
            user_agent: User-Agent header sent with every request
            page_size: Records requested per vendor page
            max_pages: Upper bound on pages fetched per scrape
            location_ttl: Seconds a resolved zip -> location id stays cached
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep_func: Awaitable sleep used for backoff
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.name = name
        self.base_url = base_url
        self.store_id = store_id
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.cache = cache if cache is not None else Cache()
        self.proxy_manager = proxy_manager if proxy_manager is not None else ProxyManager()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.user_agent = user_agent
        self.page_size = page_size
        self.max_pages = max_pages
        self.location_ttl = location_ttl
        self._transport = transport
        self._sleep = sleep_func

        self.records_processed = 0
        self.records_dropped = 0
        self.logger = logger.bind(vendor=name)

    def get_headers(self) -> Dict[str, str]:
        """Headers sent with every request, mimicking a desktop browser."""
        headers = get_browser_headers()
        headers["User-Agent"] = self.user_agent
        return headers

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[Mapping[str, Any]] = None,
        auth: Optional[httpx.Auth] = None,
        max_attempts: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """Send a request with rate limiting, proxy routing and retries.

        Args:
            method: HTTP method
            url: Absolute URL
            params: Query parameters
            headers: Extra headers merged over the browser headers
            data: Form body
            auth: httpx auth (e.g. basic auth for OAuth token requests)
            max_attempts: Override of max_retries (1 disables retrying)
            cancel: Optional token that aborts waits and retries

        Returns:
            Successful (2xx) httpx.Response

        Raises:
            FetchError: If every attempt failed
            ScrapeCancelledError: If cancelled
        """
        await self.rate_limiter.wait_for_token(cancel)

        attempts = max_attempts or self.max_retries
        request_headers = self.get_headers()
        if headers:
            request_headers.update(headers)

        retrying = build_retrying(
            max_attempts=attempts,
            base_delay=self.retry_delay,
            sleep=lambda seconds: self._sleep(seconds, cancel),
        )

        response: Optional[httpx.Response] = None
        try:
            async for attempt in retrying:
                with attempt:
                    if cancel is not None:
                        cancel.raise_if_cancelled()
                    response = await self._send(
                        method, url, params, request_headers, data, auth, cancel
                    )
        except RetryError as e:
            last_error = e.last_attempt.exception()
            self.logger.error(
                "fetch_failed",
                url=url,
                attempts=attempts,
                error=str(last_error),
            )
            raise FetchError(self.name, url, attempts, last_error) from last_error

        return response

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Mapping[str, Any]],
        headers: Dict[str, str],
        data: Optional[Mapping[str, Any]],
        auth: Optional[httpx.Auth],
        cancel: Optional[CancellationToken],
    ) -> httpx.Response:
        proxy = self.proxy_manager.get_proxy()

        timeout = self.timeout
        remaining = cancel.remaining() if cancel is not None else None
        if remaining is not None:
            timeout = max(0.001, min(timeout, remaining))

        self.logger.debug("fetching_url", method=method, url=url, proxy=str(proxy) if proxy else None)

        async with httpx.AsyncClient(
            timeout=timeout,
            proxy=proxy.url if proxy else None,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.request(
                method,
                url,
                params=params,
                headers=headers,
                data=data,
                auth=auth,
            )
            response.raise_for_status()
            return response

    async def fetch_page(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """GET a URL through the rate limiter, proxy and retry loop.

        Returns:
            Response body as text
        """
        response = await self.request("GET", url, params=params, headers=headers, cancel=cancel)
        return response.text

    async def fetch_json(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Any:
        """GET a JSON API endpoint.

        Raises:
            FetchError: If the request fails or the body is not valid JSON
        """
        json_headers = {"Accept": "application/json"}
        if headers:
            json_headers.update(headers)
        response = await self.request("GET", url, params=params, headers=json_headers, cancel=cancel)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(self.name, url, 1, e) from e

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def process_deal(self, raw: Mapping[str, Any]) -> Optional[ScrapedDeal]:
        """Normalize one raw vendor record into a ScrapedDeal.

        Never raises: records that fail normalization or validation are
        logged and dropped.

        Args:
            raw: Vendor-independent raw record (title, sale_price,
                original_price, image_url, category, unit, valid_until,
                store_id, external_id, url, description, restrictions,
                discount_type, quantity, limit)

        Returns:
            ScrapedDeal, or None if the record is invalid
        """
        self.records_processed += 1
        try:
            sale_price = normalize_price(raw.get("sale_price"))
            if sale_price is None:
                raise ValueError(f"unparseable sale_price: {raw.get('sale_price')!r}")
            original_price = normalize_price(raw.get("original_price"))
            store_id = raw.get("store_id")
            if store_id is None:
                store_id = self.store_id
            if store_id is None:
                raise ValueError("store_id is required")

            return ScrapedDeal(
                title=sanitize_text(raw.get("title")),
                sale_price=sale_price,
                original_price=original_price,
                discount_percentage=calculate_discount_percentage(original_price, sale_price),
                image_url=validate_image_url(raw.get("image_url")),
                category=normalize_category(raw.get("category")),
                unit=normalize_unit(raw.get("unit")),
                valid_until=parse_date(raw.get("valid_until")),
                store_id=int(store_id),
                external_id=_optional_str(raw.get("external_id")),
                url=normalize_url(raw.get("url")),
                description=sanitize_text(raw.get("description")) or None,
                restrictions=sanitize_text(raw.get("restrictions")) or None,
                discount_type=raw.get("discount_type") or DiscountType.SALE,
                quantity=int(raw["quantity"]) if raw.get("quantity") is not None else 1,
                limit=raw.get("limit") or None,
                metadata=dict(raw.get("metadata") or {}),
            )
        except Exception as e:
            self.records_dropped += 1
            self.logger.warning(
                "deal_dropped",
                external_id=_record_id(raw),
                title=str(_safe_get(raw, "title"))[:50],
                reason=str(e),
            )
            return None

    def process_deals(
        self,
        records: Iterable[Any],
        to_raw: Optional[Callable[[Any], Mapping[str, Any]]] = None,
    ) -> List[ScrapedDeal]:
        """Normalize a batch of records, skipping invalid ones.

        Args:
            records: Raw records, or vendor records when to_raw is given
            to_raw: Optional vendor mapping applied to each record first;
                a record whose mapping raises is dropped like any other
        """
        deals: List[ScrapedDeal] = []
        dropped = 0
        for record in records:
            if to_raw is not None:
                try:
                    raw = to_raw(record)
                except Exception as e:
                    self.records_processed += 1
                    self.records_dropped += 1
                    dropped += 1
                    self.logger.warning("deal_dropped", record=str(record)[:80], reason=str(e))
                    continue
            else:
                raw = record

            deal = self.process_deal(raw)
            if deal is None:
                dropped += 1
            else:
                deals.append(deal)

        self.logger.info("deals_processed", kept=len(deals), dropped=dropped)
        return deals

    @staticmethod
    def calculate_discount_percentage(original: Any, sale: Any):
        """See normalizer.calculate_discount_percentage."""
        return calculate_discount_percentage(original, sale)


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _safe_get(raw: Any, key: str) -> Any:
    try:
        return raw.get(key)
    except AttributeError:
        return None


def _record_id(raw: Any) -> Any:
    return _safe_get(raw, "external_id")
