"""Pydantic models for cached product projections."""

from .products import (
    ProductDetail,
    ProductMain,
    ProductWithViewCount,
    RankedProduct,
    ReconciliationReport,
)

__all__ = [
    "ProductDetail",
    "ProductMain",
    "ProductWithViewCount",
    "RankedProduct",
    "ReconciliationReport",
]
