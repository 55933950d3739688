"""
Unit tests for cache layer metrics.
"""
import pytest
from prometheus_client import REGISTRY

from catalog_cache.core.metrics import get_metrics_text
from catalog_cache.services.cache.pipeline import PipelineBatch
from catalog_cache.services.views.view_counter import ViewCounter


def sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_pipeline_metrics(redis):
    """Batches and per-item outcomes are counted."""
    before_batches = sample("cache_pipeline_batches_total", {"batch_type": "metrics_test"})
    before_ok = sample("cache_pipeline_items_total", {"batch_type": "metrics_test", "status": "ok"})

    batch = PipelineBatch("metrics_test")
    batch.push("Product::1", {"a": 1}).push("Product::2", {"b": 2})
    await batch.execute(redis)

    assert sample("cache_pipeline_batches_total", {"batch_type": "metrics_test"}) == before_batches + 1
    assert sample("cache_pipeline_items_total", {"batch_type": "metrics_test", "status": "ok"}) == before_ok + 2


@pytest.mark.asyncio
async def test_view_metrics(redis, catalog, settings):
    """Seeded and in-place increments are counted separately, runs by status."""
    counter = ViewCounter(redis, catalog, settings)
    seeded_before = sample("view_increments_total", {"path": "seeded"})
    existing_before = sample("view_increments_total", {"path": "existing"})
    runs_before = sample("view_reconcile_runs_total", {"status": "success"})

    await counter.increment(1)
    await counter.increment(1)
    await counter.reconcile()

    assert sample("view_increments_total", {"path": "seeded"}) == seeded_before + 1
    assert sample("view_increments_total", {"path": "existing"}) == existing_before + 1
    assert sample("view_reconcile_runs_total", {"status": "success"}) == runs_before + 1


def test_metrics_text():
    """Exposition text includes the cache layer metrics."""
    payload, content_type = get_metrics_text()

    assert b"view_reconcile_runs_total" in payload
    assert content_type.startswith("text/plain")
