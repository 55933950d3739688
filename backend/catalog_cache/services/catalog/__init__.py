"""Durable catalog store boundary."""

from .store import CatalogStore, CatalogTransaction, PostgresCatalogStore

__all__ = ["CatalogStore", "CatalogTransaction", "PostgresCatalogStore"]
