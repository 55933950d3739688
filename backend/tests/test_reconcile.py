"""
Unit tests for the scheduled view reconciliation pass.
"""
import asyncio
from unittest.mock import patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from catalog_cache.core.exceptions import CatalogStoreError, ReconciliationInProgressError
from catalog_cache.services.cache.keys import RECONCILE_LOCK_KEY
from catalog_cache.services.views.view_counter import ViewCounter


async def pending_keys(redis):
    return sorted([key async for key in redis.scan_iter(match="productView::*")])


@pytest.mark.asyncio
async def test_reconcile_applies_pending_counts(redis, catalog, settings):
    """Pending counts are added to the catalog and the counters removed."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)
    await counter.set_cached_view("productView::2", "3", 2100)

    report = await counter.reconcile()

    assert catalog.views[1] == 105
    assert catalog.views[2] == 53
    assert await pending_keys(redis) == []
    assert report.scanned == 2
    assert report.applied == 2
    assert report.total_delta == 8
    assert catalog.commits == 1


@pytest.mark.asyncio
async def test_reconcile_applies_only_views_since_seed(redis, catalog, settings):
    """A seeded counter contributes its increments, not its baseline."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.increment(1)
    await counter.increment(1)

    await counter.reconcile()

    assert catalog.views[1] == 102
    assert await redis.exists("productView::1", "viewBaseline::1") == 0

    # Next window seeds from the updated durable count
    assert await counter.increment(1) == 103


@pytest.mark.asyncio
async def test_reconcile_without_counters_is_noop(redis, catalog, settings):
    """Nothing pending means no catalog transaction."""
    counter = ViewCounter(redis, catalog, settings)

    report = await counter.reconcile()

    assert report.scanned == 0
    assert catalog.commits == 0
    assert catalog.views == {1: 100, 2: 50, 3: 10}


@pytest.mark.asyncio
async def test_expired_counter_contributes_nothing(redis, catalog, settings):
    """Increments in a counter that expires before the pass are lost."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.increment(1)
    await redis.pexpire("productView::1", 20)
    await redis.pexpire("viewBaseline::1", 20)
    await asyncio.sleep(0.1)

    report = await counter.reconcile()

    assert report.scanned == 0
    assert catalog.views[1] == 100


@pytest.mark.asyncio
async def test_reconcile_skips_malformed_counters(redis, catalog, settings):
    """One bad key does not abort the pass."""
    counter = ViewCounter(redis, catalog, settings)
    await redis.set("productView::abc", "4")
    await redis.set("productView::2", "lots")
    await counter.set_cached_view("productView::1", "5", 2100)

    report = await counter.reconcile()

    assert catalog.views[1] == 105
    assert catalog.views[2] == 50
    assert report.skipped == 2
    assert report.applied == 1
    assert await pending_keys(redis) == ["productView::2", "productView::abc"]


@pytest.mark.asyncio
async def test_reconcile_drops_counters_for_missing_products(redis, catalog, settings):
    """Counters for products gone from the catalog are discarded."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::42", "9", 2100)
    await counter.set_cached_view("productView::1", "1", 2100)

    report = await counter.reconcile()

    assert report.dropped == 1
    assert 42 not in catalog.views
    assert catalog.views[1] == 101
    assert await pending_keys(redis) == []


@pytest.mark.asyncio
async def test_failed_transaction_keeps_counters(redis, catalog, settings):
    """A failed catalog update rolls back and leaves every counter for next time."""
    catalog.fail_on = {2}
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)
    await counter.set_cached_view("productView::2", "3", 2100)

    with pytest.raises(CatalogStoreError):
        await counter.reconcile()

    assert catalog.views == {1: 100, 2: 50, 3: 10}
    assert await pending_keys(redis) == ["productView::1", "productView::2"]
    assert await redis.exists(RECONCILE_LOCK_KEY) == 0

    catalog.fail_on = set()
    await counter.reconcile()
    assert catalog.views[1] == 105
    assert catalog.views[2] == 53


@pytest.mark.asyncio
async def test_views_during_pass_are_retained(redis, catalog, settings):
    """Increments landing while the pass runs survive for the next pass."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)

    async def view_during_pass(product_id, delta):
        await redis.incr("productView::1")

    catalog.on_apply = view_during_pass

    report = await counter.reconcile()

    assert catalog.views[1] == 105
    assert report.retained == 1
    assert await redis.get("productView::1") == "1"

    catalog.on_apply = None
    await counter.reconcile()
    assert catalog.views[1] == 106
    assert await pending_keys(redis) == []


@pytest.mark.asyncio
async def test_reconcile_skips_when_lock_held(redis, catalog, settings):
    """Only one pass runs at a time across instances."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)
    await redis.set(RECONCILE_LOCK_KEY, "another-instance", ex=60)

    with pytest.raises(ReconciliationInProgressError):
        await counter.reconcile()

    assert catalog.views[1] == 100
    assert await pending_keys(redis) == ["productView::1"]


@pytest.mark.asyncio
async def test_reconcile_releases_lock(redis, catalog, settings):
    """The run lock is released after a successful pass."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)

    await counter.reconcile()

    assert await redis.exists(RECONCILE_LOCK_KEY) == 0


@pytest.mark.asyncio
async def test_settle_failure_leaves_other_counters_settled(redis, catalog, settings):
    """A counter that cannot be cleared after commit does not block the rest."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "10", 2100)
    await counter.set_cached_view("productView::2", "3", 2100)
    settle = counter._settle

    async def settle_or_fail(pending):
        if pending.product_id == 1:
            raise RedisConnectionError("connection lost")
        return await settle(pending)

    with patch.object(counter, "_settle", side_effect=settle_or_fail):
        report = await counter.reconcile()

    assert catalog.views == {1: 110, 2: 53, 3: 10}
    assert report.applied == 2
    assert report.unsettled == 1
    assert await pending_keys(redis) == ["productView::1"]
    assert await redis.exists(RECONCILE_LOCK_KEY) == 0


@pytest.mark.asyncio
async def test_contended_settle_skips_expired_counter(redis, catalog, settings):
    """The last-resort decrement never recreates a counter that is gone."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)

    async def expire_during_pass(product_id, delta):
        await redis.delete("productView::1")

    catalog.on_apply = expire_during_pass

    with patch("catalog_cache.services.views.view_counter.SETTLE_ATTEMPTS", 0):
        report = await counter.reconcile()

    assert catalog.views[1] == 105
    assert report.retained == 0
    assert await redis.exists("productView::1") == 0


@pytest.mark.asyncio
async def test_contended_settle_decrements_live_counter(redis, catalog, settings):
    """The last-resort decrement keeps views that arrived during the pass."""
    counter = ViewCounter(redis, catalog, settings)
    await counter.set_cached_view("productView::1", "5", 2100)

    async def view_during_pass(product_id, delta):
        await redis.incr("productView::1")

    catalog.on_apply = view_during_pass

    with patch("catalog_cache.services.views.view_counter.SETTLE_ATTEMPTS", 0):
        report = await counter.reconcile()

    assert catalog.views[1] == 105
    assert report.retained == 1
    assert await redis.get("productView::1") == "1"
