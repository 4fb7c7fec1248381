from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from cnpersist.core.logger import get_logger
from cnpersist.core.persist.buffer import PersistBuffer
from cnpersist.core.persist.keys import entry_key
from cnpersist.core.persist.models import EventPolicy, FieldPersistContext, PersistPolicy, RestoreHook
from cnpersist.core.persist.serialization import load_key_set


def restore_field(ctx: FieldPersistContext, buffer: PersistBuffer, *, logger: Optional[logging.Logger] = None) -> bool:
    """
    Restore one field from storage, or persist its initial value on first run.

    Returns True when a stored value was found. Stored data wins over the
    field's initial value.
    """
    stored = ctx.storage.get_item(ctx.persist_key)
    if not stored:
        persist_initial_value(ctx, buffer)
        return False
    restore_from_stored(stored, ctx, logger=logger)
    return True


def persist_initial_value(ctx: FieldPersistContext, buffer: PersistBuffer) -> bool:
    init_value = ctx.store_state.get(ctx.field_id)
    if not init_value:
        return False
    policy = EventPolicy.STRING if ctx.policy == PersistPolicy.STRING else EventPolicy.HASH_RESET
    buffer.emit(policy, ctx.storage, ctx.persist_key, init_value, ctx.serialize)
    return True


def restore_from_stored(stored: str, ctx: FieldPersistContext, *, logger: Optional[logging.Logger] = None) -> None:
    if ctx.policy == PersistPolicy.STRING:
        restore_string(stored, ctx)
    elif ctx.policy == PersistPolicy.HASH:
        restore_hash(stored, ctx, logger=logger)


def restore_string(stored: str, ctx: FieldPersistContext) -> None:
    value = ctx.deserialize(stored)
    if value is not None:
        ctx.store_state[ctx.field_id] = value


def restore_hash(stored: str, ctx: FieldPersistContext, *, logger: Optional[logging.Logger] = None) -> None:
    """
    Rebuild a HASH field from its key-set and entry keys.

    The post handler runs once on the complete mapping, so it can resolve
    references between entries.
    """
    try:
        entry_ids = load_key_set(stored)
    except ValueError as e:
        get_logger(logger).warning("Hash key-set under %s is unreadable (%s); field not restored", ctx.persist_key, e)
        return
    hash_value: dict[str, Any] = {}
    for entry_id in entry_ids:
        persist_value = ctx.storage.get_item(entry_key(ctx.persist_key, entry_id))
        if persist_value is None:
            continue
        value = ctx.deserialize(persist_value)
        if value is not None:
            hash_value[entry_id] = value
    ctx.store_state[ctx.field_id] = ctx.deserialize_post_handler(hash_value)


def hydrate_store(
    field_contexts: Iterable[FieldPersistContext],
    buffer: PersistBuffer,
    *,
    before_restore: Optional[RestoreHook] = None,
    after_restore: Optional[RestoreHook] = None,
    hook_arg: Any = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Re-run restore for every field; hooks run once around the whole batch."""
    if before_restore is not None:
        before_restore(hook_arg)
    restored = 0
    for ctx in field_contexts:
        if restore_field(ctx, buffer, logger=logger):
            restored += 1
    if after_restore is not None:
        after_restore(hook_arg)
    return restored
