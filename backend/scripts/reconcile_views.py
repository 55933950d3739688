"""
Run one view reconciliation pass now.

Flushes every pending `productView::*` counter into the catalog store,
the same work the worker does every 100 minutes.

Usage:
    python scripts/reconcile_views.py [--json]
"""
import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_cache.core.cache import close_redis, get_redis_client, initialize_redis
from catalog_cache.core.config import get_settings
from catalog_cache.core.database_pool import close_database_pool, initialize_database_pool
from catalog_cache.core.exceptions import ReconciliationInProgressError
from catalog_cache.core.logging import configure_logging, get_logger
from catalog_cache.services.catalog.store import PostgresCatalogStore
from catalog_cache.services.views.view_counter import ViewCounter

logger = get_logger(__name__)


async def run(print_json: bool) -> int:
    settings = get_settings()
    if not await initialize_redis(settings):
        return 1
    if not await initialize_database_pool(settings):
        await close_redis()
        return 1

    try:
        counter = ViewCounter(get_redis_client(), PostgresCatalogStore(), settings)
        report = await counter.reconcile()
    except ReconciliationInProgressError:
        print("Another reconciliation pass is running; nothing done.")
        return 2
    finally:
        await close_redis()
        await close_database_pool()

    if print_json:
        print(json.dumps(asdict(report), indent=2))
    else:
        print(
            f"Reconciled {report.applied} counters "
            f"(+{report.total_delta} views), skipped {report.skipped}, "
            f"dropped {report.dropped}, retained {report.retained}."
        )
    return 0


def main():
    parser = argparse.ArgumentParser(description="Flush pending view counters to the catalog store")
    parser.add_argument("--json", action="store_true", help="Print the pass report as JSON")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)
    sys.exit(asyncio.run(run(args.json)))


if __name__ == "__main__":
    main()
