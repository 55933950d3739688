"""
Background worker running the scheduled view reconciliation.

Usage:
    python -m catalog_cache.worker
"""
import asyncio
import signal
from typing import Optional

from catalog_cache.core.cache import close_redis, get_redis_client, initialize_redis
from catalog_cache.core.config import Settings, get_settings
from catalog_cache.core.database_pool import close_database_pool, initialize_database_pool
from catalog_cache.core.logging import configure_logging, get_logger
from catalog_cache.services.catalog.store import PostgresCatalogStore
from catalog_cache.services.product_cache import ProductCacheService
from catalog_cache.services.views.scheduler import ReconciliationScheduler

logger = get_logger(__name__)


async def run_worker(settings: Optional[Settings] = None) -> int:
    """
    Start the reconciliation schedule and run until SIGINT/SIGTERM.

    Returns:
        Process exit code
    """
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)
    logger.info("worker_startup_started")

    if not await initialize_redis(settings):
        logger.error("worker_startup_redis_unavailable")
        return 1
    if not await initialize_database_pool(settings):
        logger.error("worker_startup_database_pool_unavailable")
        await close_redis()
        return 1

    service = ProductCacheService(get_redis_client(), PostgresCatalogStore(), settings)
    scheduler = ReconciliationScheduler(service.reconcile_views, settings.reconcile_interval_seconds)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    scheduler.start()
    logger.info("worker_startup_completed")
    try:
        await stop_event.wait()
    finally:
        logger.info("worker_shutdown_started")
        await scheduler.stop()
        await close_redis()
        await close_database_pool()
        logger.info("worker_shutdown_completed")
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(run_worker()))


if __name__ == "__main__":
    main()
