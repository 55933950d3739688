"""
Redis connection pool for the cache store.

Pool settings come from Settings:
- Max connections: 20
- Connect/socket timeout: 5 seconds
"""
from typing import Optional

from redis.asyncio import Redis, from_url

from catalog_cache.core.config import Settings, get_settings
from catalog_cache.core.logging import get_logger

logger = get_logger(__name__)

# Global Redis client (owns the connection pool)
_redis_client: Optional[Redis] = None


async def initialize_redis(settings: Optional[Settings] = None) -> bool:
    """
    Initialize Redis connection pool.

    Returns:
        True if initialization successful, False otherwise
    """
    global _redis_client
    settings = settings or get_settings()

    try:
        logger.info("redis_initializing", url=settings.redis_url)

        _redis_client = from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_connect_timeout=settings.redis_socket_timeout,
            socket_timeout=settings.redis_socket_timeout,
            decode_responses=True,
        )

        await _redis_client.ping()

        logger.info("redis_initialized")
        return True

    except Exception as e:
        logger.error(
            "redis_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        _redis_client = None
        return False


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_client

    if _redis_client:
        try:
            await _redis_client.aclose()
            logger.info("redis_closed")
        except Exception as e:
            logger.error(
                "redis_close_failed",
                error=str(e),
                exc_info=True,
            )
        finally:
            _redis_client = None


def get_redis_client() -> Optional[Redis]:
    """Get Redis client (for use in async context)."""
    return _redis_client


def set_redis_client(client: Optional[Redis]) -> None:
    """Install an externally created client (embedding services, tests)."""
    global _redis_client
    _redis_client = client
