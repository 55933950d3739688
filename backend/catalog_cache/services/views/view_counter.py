"""
View counter aggregation.

View events are buffered in the cache store as `productView::{product_id}`
counters and flushed to the catalog store by a scheduled reconciliation pass.

Counting window:
- The first increment seeds the counter from the catalog's current count
  (net effect: durable count + 1) and arms a 35 minute TTL.
- The durable count used as the seed is kept next to the counter under
  `viewBaseline::{product_id}`, so reconciliation applies only
  counter - baseline.
- A counter that expires before reconciliation loses its increments.

Reconciliation runs under a Redis lock so only one pass is active across
all service instances.
"""
import time
from dataclasses import dataclass
from typing import List, Optional

from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError, WatchError

from catalog_cache.core.config import Settings, get_settings
from catalog_cache.core.exceptions import (
    CacheStoreError,
    CounterParseError,
    ReconciliationInProgressError,
)
from catalog_cache.core.logging import generate_run_id, get_logger, set_run_id
from catalog_cache.core.metrics import (
    record_reconcile_key,
    record_reconcile_run,
    record_view_increment,
)
from catalog_cache.models.products import ReconciliationReport
from catalog_cache.services.cache.keys import (
    RECONCILE_LOCK_KEY,
    VIEW_COUNTER_SCAN_PATTERN,
    parse_view_counter_key,
    view_baseline_key,
    view_counter_key,
)
from catalog_cache.services.catalog.store import CatalogStore

logger = get_logger(__name__)

SCAN_COUNT = 500
SETTLE_ATTEMPTS = 3

DECREMENT_IF_PRESENT_SCRIPT = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("DECRBY", KEYS[1], ARGV[1])
end
return false
"""


@dataclass(frozen=True)
class PendingCounter:
    """A counter observed by one reconciliation pass."""
    key: str
    baseline_key: str
    product_id: int
    observed: int
    delta: int


class ViewCounter:
    """Buffers view increments and reconciles them into the catalog store."""

    def __init__(
        self,
        redis: Redis,
        catalog: CatalogStore,
        settings: Optional[Settings] = None,
    ):
        self.redis = redis
        self.catalog = catalog
        self.settings = settings or get_settings()

    async def increment(self, product_id: int, key: Optional[str] = None) -> int:
        """
        Count one view of product_id.

        Args:
            product_id: Product that was viewed
            key: Counter key override (defaults to productView::{product_id})

        Returns:
            Counter value after the increment
        """
        key = key or view_counter_key(product_id)
        baseline_key = view_baseline_key(product_id)
        ttl = self.settings.view_counter_ttl_seconds

        try:
            exists = await self.redis.exists(key)
        except RedisError as e:
            raise CacheStoreError("exists", key, e) from e

        seeded = False
        if not exists:
            baseline = await self.catalog.get_current_view_count(product_id)
            seeded = await self._seed(key, baseline_key, baseline, ttl)

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                if self.settings.view_counter_sliding_ttl:
                    pipe.expire(key, ttl)
                    pipe.expire(baseline_key, ttl)
                results = await pipe.execute()
        except RedisError as e:
            logger.warning("view_increment_failed", key=key, error=str(e))
            raise CacheStoreError("incr", key, e) from e

        record_view_increment(seeded)
        return int(results[0])

    async def _seed(self, key: str, baseline_key: str, baseline: int, ttl: int) -> bool:
        # WATCH: counter and baseline marker are written together, and only
        # if nobody created the counter in the meantime
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                if await pipe.exists(key):
                    return False
                pipe.multi()
                pipe.set(key, baseline, ex=ttl)
                pipe.set(baseline_key, baseline, ex=ttl)
                await pipe.execute()
        except WatchError:
            # Another caller seeded or wrote the counter first; the INCR still counts
            return False
        except RedisError as e:
            raise CacheStoreError("seed", key, e) from e

        logger.debug("view_counter_seeded", key=key, baseline=baseline, ttl=ttl)
        return True

    async def set_cached_view(self, key: str, raw_count: str, ttl: int) -> None:
        """
        Write a raw pending count under key with an expiry in seconds.

        Any baseline marker of the product is removed in the same transaction,
        so the whole value counts as pending views.
        """
        product_id = parse_view_counter_key(key)
        try:
            int(raw_count)
        except (TypeError, ValueError):
            raise CounterParseError(key, f"value {raw_count!r} is not an integer") from None

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, raw_count, ex=ttl)
                pipe.delete(view_baseline_key(product_id))
                await pipe.execute()
        except RedisError as e:
            raise CacheStoreError("set", key, e) from e

    async def reconcile(self) -> ReconciliationReport:
        """
        Flush every pending counter into the catalog store.

        Raises:
            ReconciliationInProgressError: another pass holds the run lock
            CacheStoreError / CatalogStoreError: the pass failed; nothing was
                deleted, so the counters are picked up again next time
        """
        run_id = generate_run_id()
        set_run_id(run_id)
        lock = self.redis.lock(
            RECONCILE_LOCK_KEY,
            timeout=self.settings.reconcile_lock_timeout_seconds,
            blocking=False,
        )
        try:
            if not await lock.acquire():
                record_reconcile_run("skipped")
                logger.warning("view_reconcile_skipped", reason="lock_held")
                raise ReconciliationInProgressError("View reconciliation already running")

            start_time = time.time()
            try:
                report = await self._reconcile(run_id)
            except Exception as e:
                record_reconcile_run("failed", time.time() - start_time)
                logger.error(
                    "view_reconcile_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                if isinstance(e, RedisError):
                    raise CacheStoreError("reconcile", cause=e) from e
                raise
            finally:
                try:
                    await lock.release()
                except LockError as e:
                    logger.warning("view_reconcile_lock_release_failed", error=str(e))

            duration = time.time() - start_time
            record_reconcile_run("success", duration)
            logger.info(
                "view_reconcile_completed",
                scanned=report.scanned,
                applied=report.applied,
                skipped=report.skipped,
                dropped=report.dropped,
                retained=report.retained,
                unsettled=report.unsettled,
                total_delta=report.total_delta,
                duration_seconds=round(duration, 3),
            )
            return report
        finally:
            set_run_id(None)

    async def _reconcile(self, run_id: str) -> ReconciliationReport:
        logger.info("view_reconcile_started")

        # SCAN may return a key more than once
        scanned = [key async for key in self.redis.scan_iter(match=VIEW_COUNTER_SCAN_PATTERN, count=SCAN_COUNT)]
        keys = list(dict.fromkeys(scanned))
        report = ReconciliationReport(run_id=run_id, scanned=len(keys))
        if not keys:
            logger.info("view_reconcile_no_pending")
            return report

        pending = await self._read_pending(keys, report)
        if not pending:
            return report

        applied: List[PendingCounter] = []
        dropped: List[PendingCounter] = []
        async with self.catalog.transaction() as tx:
            for counter in pending:
                if counter.delta == 0 or await tx.apply_view_delta(counter.product_id, counter.delta):
                    applied.append(counter)
                else:
                    dropped.append(counter)
                    logger.warning(
                        "view_reconcile_product_missing",
                        product_id=counter.product_id,
                        delta=counter.delta,
                    )

        # Deltas are committed; clear what was applied
        for counter in applied:
            try:
                if await self._settle(counter):
                    report.retained += 1
            except (RedisError, ValueError) as e:
                # Left in place, so the next pass applies this delta again
                report.unsettled += 1
                logger.error(
                    "view_reconcile_settle_failed",
                    key=counter.key,
                    delta=counter.delta,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        for counter in dropped:
            try:
                await self.redis.delete(counter.key, counter.baseline_key)
            except RedisError as e:
                report.unsettled += 1
                logger.error("view_reconcile_settle_failed", key=counter.key, error=str(e))

        report.applied = len(applied)
        report.dropped = len(dropped)
        report.total_delta = sum(c.delta for c in applied)
        record_reconcile_key("applied", report.applied)
        record_reconcile_key("dropped", report.dropped)
        record_reconcile_key("retained", report.retained)
        record_reconcile_key("unsettled", report.unsettled)
        return report

    async def _read_pending(self, keys: List[str], report: ReconciliationReport) -> List[PendingCounter]:
        """Read counters and their baselines in one round trip; skip unparsable ones."""
        product_ids = {}
        for key in keys:
            try:
                product_ids[key] = parse_view_counter_key(key)
            except CounterParseError as e:
                report.skipped += 1
                logger.warning("view_reconcile_key_skipped", key=key, reason=e.reason)

        candidates = list(product_ids)
        if not candidates:
            record_reconcile_key("skipped", report.skipped)
            return []

        async with self.redis.pipeline(transaction=False) as pipe:
            for key in candidates:
                pipe.get(key)
                pipe.get(view_baseline_key(product_ids[key]))
            values = await pipe.execute()

        pending = []
        for i, key in enumerate(candidates):
            raw_value, raw_baseline = values[2 * i], values[2 * i + 1]
            if raw_value is None:
                # Expired between scan and read, its increments are gone
                continue
            try:
                counter = self._to_pending(key, product_ids[key], raw_value, raw_baseline)
            except CounterParseError as e:
                report.skipped += 1
                logger.warning("view_reconcile_key_skipped", key=key, reason=e.reason)
                continue
            pending.append(counter)

        record_reconcile_key("skipped", report.skipped)
        return pending

    def _to_pending(self, key: str, product_id: int, raw_value: str, raw_baseline: Optional[str]) -> PendingCounter:
        try:
            observed = int(raw_value)
        except ValueError:
            raise CounterParseError(key, f"pending value {raw_value!r} is not an integer") from None
        try:
            baseline = int(raw_baseline) if raw_baseline is not None else 0
        except ValueError:
            raise CounterParseError(key, f"baseline {raw_baseline!r} is not an integer") from None

        if baseline > observed:
            logger.warning("view_reconcile_stale_baseline", key=key, observed=observed, baseline=baseline)
            baseline = 0

        return PendingCounter(
            key=key,
            baseline_key=view_baseline_key(product_id),
            product_id=product_id,
            observed=observed,
            delta=observed - baseline,
        )

    async def _settle(self, counter: PendingCounter) -> bool:
        """
        Remove an applied counter, keeping views that arrived during the pass.

        Returns:
            True if the counter was kept (decremented) instead of deleted
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            for _ in range(SETTLE_ATTEMPTS):
                try:
                    await pipe.watch(counter.key)
                    current = await pipe.get(counter.key)
                    current = int(current) if current is not None else None
                    if current is not None and current < counter.observed:
                        # Counter expired and restarted; it belongs to the next pass
                        return True

                    pipe.multi()
                    if current is None or current == counter.observed:
                        pipe.delete(counter.key, counter.baseline_key)
                        retained = False
                    else:
                        pipe.decrby(counter.key, counter.delta)
                        retained = True
                    await pipe.execute()
                    return retained
                except WatchError:
                    continue

        # Still contended; decrement only a counter that still exists
        decrement_if_present = self.redis.register_script(DECREMENT_IF_PRESENT_SCRIPT)
        remaining = await decrement_if_present(keys=[counter.key], args=[counter.delta])
        logger.warning(
            "view_reconcile_settle_contended",
            key=counter.key,
            delta=counter.delta,
            remaining=remaining,
        )
        return remaining is not None
