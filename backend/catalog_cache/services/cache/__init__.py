"""Cache store services: detail snapshots, leaderboards and warm-up batches."""

from .detail_cache import DetailCache
from .pipeline import BatchOutcome, PipelineBatch
from .ranking_cache import RankingBoard

__all__ = ["DetailCache", "RankingBoard", "PipelineBatch", "BatchOutcome"]
