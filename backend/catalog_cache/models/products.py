"""
Product projections cached by this layer.

These models define what is stored in the cache store; building them from
catalog rows beyond the simple projections below is the caller's job.
"""
from dataclasses import dataclass
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict


class ProductDetail(BaseModel):
    """Detail page snapshot, cached under Product::<product_id>."""
    model_config = ConfigDict(frozen=True)

    product_id: int
    category_id: int
    name: str
    price: int
    description: Optional[str] = None
    image_url: Optional[str] = None
    view: int = 0


class ProductMain(BaseModel):
    """Main page projection, used as a ranking member."""
    model_config = ConfigDict(frozen=True)

    product_id: int
    name: str
    price: int
    image_url: Optional[str] = None

    @classmethod
    def from_product(cls, product: "ProductWithViewCount") -> "ProductMain":
        return cls(
            product_id=product.product_id,
            name=product.name,
            price=product.price,
            image_url=product.image_url,
        )


class ProductWithViewCount(BaseModel):
    """Catalog row with its durable view count, used to seed rankings."""
    product_id: int
    category_id: int
    name: str
    price: int
    image_url: Optional[str] = None
    view: int = 0


class RankedProduct(NamedTuple):
    """One leaderboard entry."""
    product: ProductMain
    score: float


@dataclass
class ReconciliationReport:
    """Outcome of one view reconciliation pass."""
    run_id: str
    scanned: int = 0
    applied: int = 0
    skipped: int = 0
    dropped: int = 0
    retained: int = 0
    unsettled: int = 0
    total_delta: int = 0
