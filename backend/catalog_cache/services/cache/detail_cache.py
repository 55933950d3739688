"""
Product detail cache.

Key format: `Product::{product_id}`
- Point writes: SET with an explicit TTL (last write wins)
- Warm-up: one pipelined batch after a catalog refresh, each snapshot
  appended to its product's list with the configured detail TTL

Reads are done by the request path, which falls back to the catalog store
on a miss.
"""
from typing import List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from catalog_cache.core.config import Settings, get_settings
from catalog_cache.core.exceptions import CacheStoreError
from catalog_cache.core.logging import get_logger
from catalog_cache.core.serializers import default_value_serializer
from catalog_cache.models.products import ProductDetail
from catalog_cache.services.cache.keys import product_detail_key
from catalog_cache.services.cache.pipeline import BatchOutcome, PipelineBatch

logger = get_logger(__name__)


class DetailCache:
    """Per-product detail snapshots."""

    def __init__(self, redis: Redis, settings: Optional[Settings] = None):
        self.redis = redis
        self.settings = settings or get_settings()

    async def set(self, product_id: int, snapshot: ProductDetail, ttl: int) -> None:
        await self.set_key(product_detail_key(product_id), snapshot, ttl)

    async def set_key(self, key: str, snapshot: ProductDetail, ttl: int) -> None:
        """Store snapshot under an explicit key with an expiry in seconds."""
        try:
            await self.redis.set(key, default_value_serializer.serialize(snapshot), ex=ttl)
        except RedisError as e:
            logger.warning("cache_set_error", cache_type="detail", key=key, error=str(e))
            raise CacheStoreError("set", key, e) from e

        logger.debug("cache_set", cache_type="detail", key=key, ttl=ttl)

    async def warmup_batch(
        self,
        snapshots: List[ProductDetail],
        ttl: Optional[int] = None,
    ) -> List[BatchOutcome]:
        """
        Bulk-populate detail entries in a single round trip.

        Returns:
            Per-snapshot outcomes in input order
        """
        if ttl is None:
            ttl = self.settings.detail_ttl_seconds
        batch = PipelineBatch("detail")
        for snapshot in snapshots:
            batch.push(product_detail_key(snapshot.product_id), snapshot, ttl=ttl)

        outcomes = await batch.execute(self.redis)
        logger.info("detail_warmup_completed", products_count=len(snapshots))
        return outcomes

    async def invalidate(self, product_id: int) -> int:
        """
        Drop a product's detail entry.

        Returns:
            Number of keys removed (0 or 1)
        """
        key = product_detail_key(product_id)
        try:
            count = await self.redis.delete(key)
        except RedisError as e:
            raise CacheStoreError("delete", key, e) from e

        logger.info("cache_invalidated", cache_type="detail", key=key, count=count)
        return count
