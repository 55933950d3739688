"""
Key and value serializers applied before anything is written to the cache store.

Ranking members are compared by their serialized form, so value
serialization must be deterministic for equal inputs.
"""
import json
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


class StringKeySerializer:
    """Serialize cache keys as plain strings."""

    def serialize(self, key: str) -> str:
        if not isinstance(key, str) or not key:
            raise ValueError(f"Cache key must be a non-empty string, got {key!r}")
        return key


class JsonValueSerializer:
    """Serialize values as JSON text."""

    def serialize(self, value: Any) -> str:
        if isinstance(value, BaseModel):
            return value.model_dump_json()
        if isinstance(value, str):
            return value
        if isinstance(value, Mapping):
            return json.dumps(dict(value), sort_keys=True, separators=(",", ":"))
        return json.dumps(value, separators=(",", ":"))

    def deserialize(self, raw: Optional[str], model: Optional[Type[M]] = None) -> Any:
        if raw is None:
            return None
        if model is not None:
            return model.model_validate_json(raw)
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Not JSON, hand back the raw string
            return raw


default_key_serializer = StringKeySerializer()
default_value_serializer = JsonValueSerializer()
