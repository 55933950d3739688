"""
Exception hierarchy for the cache layer.

Store failures are not retried here; they are wrapped and raised so the
caller decides whether to fall back to the durable store or retry.
"""
from typing import Optional


class CatalogCacheError(Exception):
    """Base class for every error raised by this package."""
    pass


class CacheStoreError(CatalogCacheError):
    """A cache store command failed (connection loss, timeout, wrong type)."""

    def __init__(self, operation: str, key: Optional[str] = None, cause: Optional[BaseException] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        message = f"Cache store {operation} failed"
        if key is not None:
            message += f" for key {key!r}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class CatalogStoreError(CatalogCacheError):
    """The durable catalog store could not serve a read or update."""
    pass


class ProductNotFoundError(CatalogStoreError):
    """The durable catalog store has no row for the product."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found in catalog store")


class CounterParseError(CatalogCacheError):
    """A view counter key or its pending value could not be parsed."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid view counter {key!r}: {reason}")


class ReconciliationInProgressError(CatalogCacheError):
    """Another reconciliation pass holds the run lock."""
    pass
