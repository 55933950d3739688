"""
Durable catalog store boundary.

The catalog store owns authoritative product rows and view totals. This
layer only needs two operations from it:
- read the current view count of a product (counter seeding)
- add a pending delta to a product's view count, inside one transaction
  per reconciliation pass
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional

import asyncpg

from catalog_cache.core.database_pool import get_primary_pool
from catalog_cache.core.exceptions import CatalogStoreError, ProductNotFoundError
from catalog_cache.core.logging import get_logger

logger = get_logger(__name__)


class CatalogTransaction(ABC):
    """Updates issued inside one durable-store transaction."""

    @abstractmethod
    async def apply_view_delta(self, product_id: int, delta: int) -> bool:
        """
        Add delta to the product's view count.

        Returns:
            True if a product row was updated, False if none exists
        """


class CatalogStore(ABC):
    """Durable catalog store used as the source of truth for view counts."""

    @abstractmethod
    async def get_current_view_count(self, product_id: int) -> int:
        """
        Raises:
            ProductNotFoundError: no row for product_id
        """

    @abstractmethod
    def transaction(self) -> AsyncContextManager[CatalogTransaction]:
        """Async context manager; commits on clean exit, rolls back on error."""


class _PostgresTransaction(CatalogTransaction):

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def apply_view_delta(self, product_id: int, delta: int) -> bool:
        # A failed row aborts the enclosing transaction, so the whole pass rolls back
        try:
            status = await self.conn.execute(
                "UPDATE product SET view = view + $2 WHERE product_id = $1",
                product_id,
                delta,
            )
        except asyncpg.PostgresError as e:
            logger.error(
                "catalog_view_update_failed",
                product_id=product_id,
                delta=delta,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CatalogStoreError(f"Failed to apply view delta for product {product_id}") from e
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return status.split()[-1] != "0"


class PostgresCatalogStore(CatalogStore):
    """Catalog store backed by the `product` table in PostgreSQL."""

    def __init__(self, pool: Optional[asyncpg.Pool] = None):
        self._pool = pool

    @property
    def pool(self) -> asyncpg.Pool:
        pool = self._pool or get_primary_pool()
        if pool is None:
            raise CatalogStoreError("Database connection pool is not initialized")
        return pool

    async def get_current_view_count(self, product_id: int) -> int:
        try:
            view = await self.pool.fetchval(
                "SELECT view FROM product WHERE product_id = $1",
                product_id,
            )
        except asyncpg.PostgresError as e:
            logger.error(
                "catalog_view_read_failed",
                product_id=product_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CatalogStoreError(f"Failed to read view count for product {product_id}") from e

        if view is None:
            raise ProductNotFoundError(product_id)
        return int(view)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CatalogTransaction]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield _PostgresTransaction(conn)
