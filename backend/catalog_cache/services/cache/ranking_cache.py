"""
Per-category ranking leaderboard.

Key format: `Ranking::{category_id}` (sorted set)
- Member: serialized ProductMain projection
- Score: the product's view count at write time

Scores are not synced with pending view counters; a scheduler re-warms
the board or issues point updates.
"""
from typing import List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from catalog_cache.core.config import Settings, get_settings
from catalog_cache.core.exceptions import CacheStoreError
from catalog_cache.core.logging import get_logger
from catalog_cache.core.serializers import default_value_serializer
from catalog_cache.models.products import ProductMain, ProductWithViewCount, RankedProduct
from catalog_cache.services.cache.keys import ranking_key
from catalog_cache.services.cache.pipeline import BatchOutcome, PipelineBatch

logger = get_logger(__name__)


class RankingBoard:
    """Top-N leaderboard per category."""

    def __init__(self, redis: Redis, settings: Optional[Settings] = None):
        self.redis = redis
        self.settings = settings or get_settings()

    async def warmup_batch(
        self,
        category_id: int,
        products: List[ProductWithViewCount],
        replace: bool = False,
    ) -> List[BatchOutcome]:
        """
        Seed a category's leaderboard in one round trip.

        Args:
            category_id: Category whose board is written
            products: Catalog rows; view count becomes the score
            replace: Drop the existing board first, in the same batch

        Returns:
            Per-product outcomes (preceded by the delete outcome when replace=True)
        """
        key = ranking_key(category_id)
        batch = PipelineBatch("ranking")
        if replace:
            batch.delete(key)
        for product in products:
            batch.add_scored(key, ProductMain.from_product(product), product.view)

        outcomes = await batch.execute(self.redis)
        logger.info(
            "ranking_warmup_completed",
            category_id=category_id,
            products_count=len(products),
            replace=replace,
        )
        return outcomes

    async def set_entry(self, category_id: int, projection: ProductMain, score: float) -> None:
        await self.set_entry_key(ranking_key(category_id), projection, score)

    async def set_entry_key(self, key: str, projection: ProductMain, score: float) -> None:
        """Add or re-score one member outside the bulk warm-up flow."""
        member = default_value_serializer.serialize(projection)
        try:
            await self.redis.zadd(key, {member: float(score)})
        except RedisError as e:
            logger.warning("cache_set_error", cache_type="ranking", key=key, error=str(e))
            raise CacheStoreError("zadd", key, e) from e

        logger.debug("cache_set", cache_type="ranking", key=key, product_id=projection.product_id)

    async def top_n(self, category_id: int, limit: Optional[int] = None) -> List[RankedProduct]:
        return await self.top_n_key(ranking_key(category_id), limit)

    async def top_n_key(self, key: str, limit: Optional[int] = None) -> List[RankedProduct]:
        """
        Get the highest scored members, best first.

        Ties keep the store's own ordering for equal scores.
        """
        if limit is None:
            limit = self.settings.ranking_top_n
        if limit <= 0:
            return []
        try:
            rows = await self.redis.zrevrange(key, 0, limit - 1, withscores=True)
        except RedisError as e:
            logger.warning("cache_get_error", cache_type="ranking", key=key, error=str(e))
            raise CacheStoreError("zrevrange", key, e) from e

        if not rows:
            logger.debug("cache_miss", cache_type="ranking", key=key)
            return []

        logger.debug("cache_hit", cache_type="ranking", key=key, entries=len(rows))
        return [
            RankedProduct(
                product=default_value_serializer.deserialize(member, ProductMain),
                score=float(score),
            )
            for member, score in rows
        ]

    async def invalidate(self, category_id: int) -> int:
        key = ranking_key(category_id)
        try:
            count = await self.redis.delete(key)
        except RedisError as e:
            raise CacheStoreError("delete", key, e) from e

        logger.info("cache_invalidated", cache_type="ranking", key=key, count=count)
        return count
