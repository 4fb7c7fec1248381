from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from cnpersist.core.logger import get_logger
from cnpersist.core.persist.buffer import PersistBuffer
from cnpersist.core.persist.models import EventPolicy, FieldPersistContext

StateLevelPersist = Callable[[Any], None]
ListenerPersist = Callable[[Sequence[Any]], None]
ActionListener = Callable[[str, Sequence[Any]], None]


def produce_state_level_persist(policy: EventPolicy, ctx: FieldPersistContext, buffer: PersistBuffer) -> StateLevelPersist:
    """Persister fed with the field's whole new value (STRING, or HASH_RESET for HASH fields)."""

    def _persist(new_value: Any) -> None:
        buffer.emit(policy, ctx.storage, ctx.persist_key, new_value, ctx.serialize)

    return _persist


def produce_hash_level_persist(
    ctx: FieldPersistContext, buffer: PersistBuffer, *, logger: Optional[logging.Logger] = None
) -> ListenerPersist:
    """
    Persister fed with the arguments of the field's hash action: ``(value, entry_id)``.
    """
    log = get_logger(logger)

    def _persist(args: Sequence[Any]) -> None:
        if len(args) < 2:
            log.warning(
                "Action '%s' called with %d argument(s); expected (value, entry_id). Entry not persisted.",
                ctx.hash_action_name,
                len(args),
            )
            return
        buffer.merge_entry(ctx.storage, ctx.persist_key, str(args[1]), args[0], ctx.serialize)

    return _persist


def produce_action_listener(registry: Mapping[str, ListenerPersist]) -> ActionListener:
    def _listener(name: str, args: Sequence[Any]) -> None:
        persister = registry.get(name)
        if persister is not None:
            persister(args)

    return _listener


def produce_store_persist(
    registry: Mapping[str, StateLevelPersist], store_state: Dict[str, Any], buffer: PersistBuffer
) -> Callable[[], int]:
    """Whole-store persist: emit every field's current value, then flush without waiting."""

    def _persist() -> int:
        for field_id, persist in registry.items():
            persist(store_state.get(field_id))
        return buffer.flush_now()

    return _persist
