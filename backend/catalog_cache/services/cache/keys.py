"""
Cache key layout.

- `Product::<product_id>`: detail snapshot
- `Ranking::<category_id>`: per-category leaderboard (sorted set)
- `productView::<product_id>`: pending view counter
- `viewBaseline::<product_id>`: durable count the counter was seeded with
"""
from catalog_cache.core.exceptions import CounterParseError

KEY_SEPARATOR = "::"

PRODUCT_DETAIL_PREFIX = "Product"
RANKING_PREFIX = "Ranking"
VIEW_COUNTER_PREFIX = "productView"
VIEW_BASELINE_PREFIX = "viewBaseline"

VIEW_COUNTER_SCAN_PATTERN = f"{VIEW_COUNTER_PREFIX}{KEY_SEPARATOR}*"

RECONCILE_LOCK_KEY = "lock:view-reconcile"


def product_detail_key(product_id: int) -> str:
    """Generate cache key for a product detail snapshot."""
    return f"{PRODUCT_DETAIL_PREFIX}{KEY_SEPARATOR}{product_id}"


def ranking_key(category_id: int) -> str:
    """Generate cache key for a category leaderboard."""
    return f"{RANKING_PREFIX}{KEY_SEPARATOR}{category_id}"


def view_counter_key(product_id: int) -> str:
    """Generate cache key for a pending view counter."""
    return f"{VIEW_COUNTER_PREFIX}{KEY_SEPARATOR}{product_id}"


def view_baseline_key(product_id: int) -> str:
    """Generate cache key for a view counter's seed baseline."""
    return f"{VIEW_BASELINE_PREFIX}{KEY_SEPARATOR}{product_id}"


def parse_view_counter_key(key: str) -> int:
    """
    Extract the product ID from a view counter key.

    Raises:
        CounterParseError: key is not `productView::<integer>`
    """
    prefix, sep, raw_id = key.partition(KEY_SEPARATOR)
    if prefix != VIEW_COUNTER_PREFIX or not sep:
        raise CounterParseError(key, "unexpected key layout")
    try:
        return int(raw_id)
    except ValueError:
        raise CounterParseError(key, f"product id {raw_id!r} is not an integer") from None
