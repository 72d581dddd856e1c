"""Run one scrape job against the configured database.

Usage:
    python scripts/run_scrape.py
    python scripts/run_scrape.py --website-id 3f0c...
    python scripts/run_scrape.py --website-id 3f0c... --filter-id 9a21...
"""

import argparse
import asyncio
import os
import sys

# Add backend to path so we can import dealmonitor modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dealmonitor.core.logging import configure_logging
from dealmonitor.db.session import async_session_factory, engine
from dealmonitor.dependencies import build_scraper_service
from dealmonitor.models import Base


async def run_scrape(website_id: str = None, filter_id: str = None) -> int:
    """Run a job and print its summary.

    Returns:
        Process exit code (1 if any URL or page failed)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    service = build_scraper_service(async_session_factory)
    try:
        result = await service.execute_scrape_job(website_id=website_id, filter_id=filter_id)
    finally:
        await service.close()
        await engine.dispose()

    print(f"\n{'='*70}")
    print(f"  Scrape {service.progress.status}")
    print(f"{'='*70}")
    print(f"  Products encountered: {result.total_products_encountered}")
    print(f"  New deals found:      {result.new_deals_found}")
    print(f"  Duration:             {result.duration_ms / 1000:.1f}s")
    print(f"  Errors:               {len(result.errors)}")
    for error in result.errors:
        print(f"    - {error.url}: {error.message}")
    print(f"{'='*70}\n")

    return 1 if result.errors else 0


def main():
    parser = argparse.ArgumentParser(description="Run a DealMonitor scrape job")
    parser.add_argument("--website-id", help="Only scrape this website")
    parser.add_argument("--filter-id", help="Only evaluate this filter")
    args = parser.parse_args()

    configure_logging()
    sys.exit(asyncio.run(run_scrape(args.website_id, args.filter_id)))


if __name__ == "__main__":
    main()
