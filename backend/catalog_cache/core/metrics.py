"""
Prometheus metrics for the cache layer.

Metrics Categories:
- View counting: increments by path, reconciliation runs and per-key outcomes
- Warm-up pipelines: batches submitted and items by outcome

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
"""
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from catalog_cache.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# VIEW COUNTER METRICS
# ============================================================================

view_increments_total = Counter(
    "view_increments_total",
    "Total number of view increments buffered in the cache store",
    ["path"],  # "existing" or "seeded"
    registry=registry,
)

view_reconcile_runs_total = Counter(
    "view_reconcile_runs_total",
    "Total number of view reconciliation passes",
    ["status"],  # "success", "failed", "skipped"
    registry=registry,
)

view_reconcile_keys_total = Counter(
    "view_reconcile_keys_total",
    "Total number of counter keys handled by reconciliation",
    ["outcome"],  # "applied", "skipped", "dropped", "retained", "unsettled"
    registry=registry,
)

view_reconcile_duration_seconds = Histogram(
    "view_reconcile_duration_seconds",
    "View reconciliation pass duration in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

# ============================================================================
# PIPELINE METRICS
# ============================================================================

cache_pipeline_batches_total = Counter(
    "cache_pipeline_batches_total",
    "Total number of pipelined batches submitted to the cache store",
    ["batch_type"],  # "detail", "ranking", ...
    registry=registry,
)

cache_pipeline_items_total = Counter(
    "cache_pipeline_items_total",
    "Total number of items submitted in pipelined batches",
    ["batch_type", "status"],  # status: "ok" or "failed"
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def record_view_increment(seeded: bool) -> None:
    """Record one buffered view increment."""
    view_increments_total.labels(path="seeded" if seeded else "existing").inc()


def record_reconcile_run(status: str, duration: float = 0.0) -> None:
    """Record a finished (or skipped) reconciliation pass."""
    view_reconcile_runs_total.labels(status=status).inc()
    if status != "skipped":
        view_reconcile_duration_seconds.observe(duration)


def record_reconcile_key(outcome: str, count: int = 1) -> None:
    """Record reconciliation outcomes for counter keys."""
    if count:
        view_reconcile_keys_total.labels(outcome=outcome).inc(count)


def record_pipeline_batch(batch_type: str, ok_count: int, failed_count: int) -> None:
    """Record a submitted pipeline batch and its per-item outcomes."""
    cache_pipeline_batches_total.labels(batch_type=batch_type).inc()
    if ok_count:
        cache_pipeline_items_total.labels(batch_type=batch_type, status="ok").inc(ok_count)
    if failed_count:
        cache_pipeline_items_total.labels(batch_type=batch_type, status="failed").inc(failed_count)


def get_metrics_text() -> tuple[bytes, str]:
    """
    Render metrics in Prometheus exposition format.

    Returns:
        (payload, content_type) for an outer HTTP layer to serve
    """
    return generate_latest(registry), CONTENT_TYPE_LATEST
