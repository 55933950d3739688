"""
Caller-facing facade over the detail cache, ranking board and view counter.

Request handlers and catalog refresh jobs use this class; cache misses are
their responsibility to resolve against the catalog store.
"""
from typing import List, Optional

from redis.asyncio import Redis

from catalog_cache.core.config import Settings, get_settings
from catalog_cache.models.products import (
    ProductDetail,
    ProductMain,
    ProductWithViewCount,
    RankedProduct,
    ReconciliationReport,
)
from catalog_cache.services.cache.detail_cache import DetailCache
from catalog_cache.services.cache.pipeline import BatchOutcome
from catalog_cache.services.cache.ranking_cache import RankingBoard
from catalog_cache.services.catalog.store import CatalogStore
from catalog_cache.services.views.view_counter import ViewCounter


class ProductCacheService:
    """Product read-path cache and view aggregation."""

    def __init__(
        self,
        redis: Redis,
        catalog: CatalogStore,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.details = DetailCache(redis, self.settings)
        self.rankings = RankingBoard(redis, self.settings)
        self.views = ViewCounter(redis, catalog, self.settings)

    async def warmup_detail_batch(self, snapshots: List[ProductDetail]) -> List[BatchOutcome]:
        return await self.details.warmup_batch(snapshots)

    async def warmup_ranking_batch(
        self,
        category_id: int,
        products: List[ProductWithViewCount],
        replace: bool = False,
    ) -> List[BatchOutcome]:
        return await self.rankings.warmup_batch(category_id, products, replace=replace)

    async def get_top_ranking(self, category_id: int) -> List[RankedProduct]:
        """Top entries of a category, best first (at most ranking_top_n)."""
        return await self.rankings.top_n(category_id)

    async def set_cached_view(self, key: str, raw_count: str, ttl: int) -> None:
        await self.views.set_cached_view(key, raw_count, ttl)

    async def increment_view(self, key: str, product_id: int) -> int:
        return await self.views.increment(product_id, key=key)

    async def set_detail(self, key: str, snapshot: ProductDetail, ttl: int) -> None:
        await self.details.set_key(key, snapshot, ttl)

    async def set_ranking_entry(self, key: str, projection: ProductMain, score: float) -> None:
        await self.rankings.set_entry_key(key, projection, score)

    async def reconcile_views(self) -> ReconciliationReport:
        return await self.views.reconcile()
