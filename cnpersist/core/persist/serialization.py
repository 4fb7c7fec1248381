from __future__ import annotations

import json
from typing import Any, Callable, Optional

Serializer = Callable[[Any], Optional[str]]
Deserializer = Callable[[str], Any]
PostHandler = Callable[[Any], Any]


def default_serialize(value: Any) -> Optional[str]:
    return json.dumps(value, ensure_ascii=False)


def default_deserialize(stored: Optional[str]) -> Any:
    if not stored:
        return None
    return json.loads(stored)


def default_post_handler(value: Any) -> Any:
    return value


def compose_serializer(value_filter: Optional[Callable[[Any], Any]], serialize: Optional[Serializer]) -> Serializer:
    """Mask first, then serialize; a user serializer only ever sees the trimmed value."""
    ser = serialize or default_serialize
    if value_filter is None:
        return ser

    def _serialize(value: Any) -> Optional[str]:
        return ser(value_filter(value))

    return _serialize


def dump_key_set(entry_ids: Any) -> str:
    return json.dumps([str(i) for i in entry_ids], ensure_ascii=False)


def load_key_set(stored: Optional[str]) -> list[str]:
    """
    Parse a persisted hash key-set.

    Raises ValueError when the stored value isn't a JSON list; callers decide how
    to degrade.
    """
    if not stored:
        return []
    obj = json.loads(stored)
    if not isinstance(obj, list):
        raise ValueError("hash key-set must be a JSON array")
    seen: dict[str, None] = {}
    for item in obj:
        seen.setdefault(str(item), None)
    return list(seen)
