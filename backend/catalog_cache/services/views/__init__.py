"""View counting and reconciliation."""

from .scheduler import ReconciliationScheduler
from .view_counter import ViewCounter

__all__ = ["ViewCounter", "ReconciliationScheduler"]
