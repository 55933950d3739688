"""
Periodic view reconciliation.

Runs ViewCounter.reconcile() on a fixed interval (100 minutes by default)
as an asyncio background task. Runs never overlap inside one process;
across processes the reconcile lock decides which instance does the work.
"""
import asyncio
from typing import Awaitable, Callable, Optional

from catalog_cache.core.exceptions import ReconciliationInProgressError
from catalog_cache.core.logging import get_logger
from catalog_cache.models.products import ReconciliationReport

logger = get_logger(__name__)


class ReconciliationScheduler:
    """Fixed-interval trigger for the view reconciliation pass."""

    def __init__(
        self,
        reconcile: Callable[[], Awaitable[ReconciliationReport]],
        interval_seconds: float,
    ):
        self.reconcile = reconcile
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._run_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("reconcile_scheduler_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop; an in-flight pass is cancelled with it."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("reconcile_scheduler_stopped")

    async def run_once(self) -> Optional[ReconciliationReport]:
        """
        Run one pass now.

        Returns:
            The pass report, or None when another pass already holds the lock
        """
        async with self._run_lock:
            try:
                return await self.reconcile()
            except ReconciliationInProgressError:
                return None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Already logged by the pass; keep the schedule alive
                logger.error("reconcile_scheduler_run_failed", error=str(e), error_type=type(e).__name__)
