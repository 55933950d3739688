"""
Async connection pool for the durable catalog store (PostgreSQL via asyncpg).

- Pool size: 5-20 connections
- Max inactive connection lifetime: 1 hour
- Command timeout: 30 seconds
"""
from typing import Optional

import asyncpg

from catalog_cache.core.config import Settings, get_settings
from catalog_cache.core.logging import get_logger

logger = get_logger(__name__)

_primary_pool: Optional[asyncpg.Pool] = None


async def initialize_database_pool(settings: Optional[Settings] = None) -> bool:
    """
    Initialize the primary database connection pool.

    Returns:
        True if initialization successful, False otherwise
    """
    global _primary_pool
    settings = settings or get_settings()

    try:
        logger.info("db_pool_initializing", url_prefix=settings.database_url[:30])

        _primary_pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=5,
            max_size=20,
            max_queries=50000,  # Recycle connections after N queries
            max_inactive_connection_lifetime=3600,
            command_timeout=30,
        )

        logger.info("db_pool_initialized")
        return True

    except Exception as e:
        logger.error(
            "db_pool_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        _primary_pool = None
        return False


async def close_database_pool() -> None:
    """Close the database connection pool."""
    global _primary_pool

    if _primary_pool:
        try:
            await _primary_pool.close()
            logger.info("db_pool_closed")
        except Exception as e:
            logger.error("db_pool_close_failed", error=str(e))
        finally:
            _primary_pool = None


def get_primary_pool() -> Optional[asyncpg.Pool]:
    """Get primary database connection pool."""
    return _primary_pool
