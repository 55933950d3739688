"""
Warm-up pipeline batcher.

Collects many cache writes and submits them as one pipelined command
sequence, so warming K entries costs one network round trip instead of K.
Commands run in submission order at the store; a failing command does not
stop the ones after it, and each item's outcome is reported back.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from catalog_cache.core.exceptions import CacheStoreError
from catalog_cache.core.logging import get_logger
from catalog_cache.core.metrics import record_pipeline_batch
from catalog_cache.core.serializers import (
    JsonValueSerializer,
    StringKeySerializer,
    default_key_serializer,
    default_value_serializer,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one batch item (all of its commands)."""
    key: str
    ok: bool
    error: Optional[str] = None


@dataclass
class _BatchItem:
    key: str
    commands: List[Tuple[str, tuple, Dict[str, Any]]] = field(default_factory=list)


class PipelineBatch:
    """
    Batch builder for pipelined cache writes.

    Usage:
        batch = PipelineBatch("detail")
        for snapshot in snapshots:
            batch.push(product_detail_key(snapshot.product_id), snapshot, ttl=3600)
        outcomes = await batch.execute(redis)
    """

    def __init__(
        self,
        batch_type: str = "generic",
        key_serializer: Optional[StringKeySerializer] = None,
        value_serializer: Optional[JsonValueSerializer] = None,
    ):
        self.batch_type = batch_type
        self.key_serializer = key_serializer or default_key_serializer
        self.value_serializer = value_serializer or default_value_serializer
        self._items: List[_BatchItem] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def command_count(self) -> int:
        return sum(len(item.commands) for item in self._items)

    def _add(self, key: str, *commands: Tuple[str, tuple, Dict[str, Any]]) -> "PipelineBatch":
        self._items.append(_BatchItem(key=key, commands=list(commands)))
        return self

    def push(self, key: str, value: Any, ttl: Optional[int] = None) -> "PipelineBatch":
        """Append value to the list at key, optionally (re)arming its TTL."""
        skey = self.key_serializer.serialize(key)
        commands = [("rpush", (skey, self.value_serializer.serialize(value)), {})]
        if ttl is not None:
            commands.append(("expire", (skey, ttl), {}))
        return self._add(skey, *commands)

    def add_scored(self, key: str, member: Any, score: float) -> "PipelineBatch":
        """Add or re-score member in the sorted set at key."""
        skey = self.key_serializer.serialize(key)
        smember = self.value_serializer.serialize(member)
        return self._add(skey, ("zadd", (skey, {smember: float(score)}), {}))

    def set(self, key: str, value: Any, ttl: int) -> "PipelineBatch":
        """Set key to value with an expiry in seconds."""
        skey = self.key_serializer.serialize(key)
        return self._add(skey, ("set", (skey, self.value_serializer.serialize(value)), {"ex": ttl}))

    def delete(self, key: str) -> "PipelineBatch":
        skey = self.key_serializer.serialize(key)
        return self._add(skey, ("delete", (skey,), {}))

    async def execute(self, redis: Redis) -> List[BatchOutcome]:
        """
        Submit every queued command in one round trip.

        Returns:
            One BatchOutcome per item, in submission order

        Raises:
            CacheStoreError: the pipeline as a whole could not be delivered
        """
        if not self._items:
            return []

        try:
            async with redis.pipeline(transaction=False) as pipe:
                for item in self._items:
                    for name, args, kwargs in item.commands:
                        getattr(pipe, name)(*args, **kwargs)
                results = await pipe.execute(raise_on_error=False)
        except RedisError as e:
            logger.warning(
                "pipeline_batch_failed",
                batch_type=self.batch_type,
                items=len(self._items),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CacheStoreError("pipeline", cause=e) from e

        outcomes = []
        position = 0
        for item in self._items:
            item_results = results[position:position + len(item.commands)]
            position += len(item.commands)
            errors = [r for r in item_results if isinstance(r, Exception)]
            if errors:
                outcomes.append(BatchOutcome(key=item.key, ok=False, error=str(errors[0])))
            else:
                outcomes.append(BatchOutcome(key=item.key, ok=True))

        failed = [o for o in outcomes if not o.ok]
        record_pipeline_batch(self.batch_type, len(outcomes) - len(failed), len(failed))

        if failed:
            logger.warning(
                "pipeline_batch_partial_failure",
                batch_type=self.batch_type,
                items=len(outcomes),
                failed=len(failed),
                sample_failed=[o.key for o in failed[:5]],
            )
        logger.info(
            "pipeline_batch_executed",
            batch_type=self.batch_type,
            items=len(outcomes),
            commands=position,
        )
        return outcomes
