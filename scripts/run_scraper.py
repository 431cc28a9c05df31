"""Manual scraper runner for testing and debugging vendor scrapers.

This script runs the scraper for one configured store (or all of them)
with the credentials from the environment / .env file and prints the
deals it fetches.

Usage:
    python scripts/run_scraper.py --store-id 1
    python scripts/run_scraper.py --store-id 2 --limit 5
    python scripts/run_scraper.py --all
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

# Add backend to path so we can import grocery_deals modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from grocery_deals.config import settings
from grocery_deals.core.exceptions import DealScraperException
from grocery_deals.core.logging import setup_logging
from grocery_deals.scrapers.base import ScrapedDeal
from grocery_deals.scrapers.register_scrapers import build_scraper_factory
from grocery_deals.scrapers.scraper_service import DealScraperService


def _print_deals(store_name: str, deals: List[ScrapedDeal], limit: int) -> None:
    print(f"\n{'='*70}")
    print(f"  {store_name}: {len(deals)} deals")
    print(f"{'='*70}\n")

    for i, deal in enumerate(deals[:limit], 1):
        print(f"[{i}] {deal.title}")
        print(f"    Price: ${deal.sale_price:,.2f}")

        if deal.original_price:
            print(f"    Original: ${deal.original_price:,.2f}")

        if deal.discount_percentage is not None:
            print(f"    Discount: {deal.discount_percentage}%")

        print(f"    Type: {deal.discount_type.value}")

        if deal.category:
            print(f"    Category: {deal.category.value}")

        if deal.limit:
            print(f"    Limit: {deal.limit}")

        if deal.url:
            print(f"    URL: {deal.url[:80]}")
        print()

    # Count by discount type
    deal_types = {}
    for deal in deals:
        deal_types[deal.discount_type.value] = deal_types.get(deal.discount_type.value, 0) + 1

    if deal_types:
        print("  Discount types:")
        for deal_type, count in sorted(deal_types.items()):
            print(f"    - {deal_type}: {count}")


async def run_scraper(store_id: Optional[int], run_all: bool, limit: int = 10) -> int:
    """Run one or all store scrapers and display the results.

    Returns:
        Process exit code
    """
    service = DealScraperService(build_scraper_factory(settings), settings.get_store_configs())
    configs = {config.id: config for config in service.list_store_configs()}

    if not run_all and store_id not in configs:
        print(f"\nError: Unknown store id '{store_id}'")
        print("\nConfigured stores:")
        for config in configs.values():
            print(f"   - {config.id}: {config.name}")
        return 1

    try:
        if run_all:
            results = await service.scrape_deals_for_all_stores()
            for sid, deals in results.items():
                status = service.get_sync_status(sid)
                _print_deals(configs[sid].name, deals, limit)
                if status.error_message:
                    print(f"  Error: {status.error_message}")
        else:
            deals = await service.scrape_deals_for_store(store_id)
            _print_deals(configs[store_id].name, deals, limit)
    except DealScraperException as e:
        print(f"\nError occurred while fetching deals:")
        print(f"   {type(e).__name__}: {e.message}")
        return 1
    finally:
        await service.aclose()

    return 0


def main():
    """Parse arguments and run the scraper."""
    parser = argparse.ArgumentParser(
        description="Run a grocery store scraper for testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_scraper.py --store-id 1
  python scripts/run_scraper.py --store-id 2 --limit 5
  python scripts/run_scraper.py --all
        """,
    )

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--store-id",
        type=int,
        help="Configured store id (1 = Kroger, 2 = Walmart)",
    )
    target.add_argument(
        "--all",
        action="store_true",
        help="Scrape every configured store",
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of deals to display per store (default: 10)",
    )

    args = parser.parse_args()

    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    sys.exit(asyncio.run(run_scraper(args.store_id, args.all, args.limit)))


if __name__ == "__main__":
    main()
