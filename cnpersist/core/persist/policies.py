from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from cnpersist.core.logger import get_logger
from cnpersist.core.persist.keys import entry_key
from cnpersist.core.persist.models import EventPolicy, PersistEvent
from cnpersist.core.persist.serialization import dump_key_set, load_key_set
from cnpersist.core.storage.base import SafeStorage


def persist_string(event: PersistEvent) -> None:
    persist_value = event.serialize(event.new_value)
    if persist_value is None:
        return
    event.storage.set_item(event.storage_key, persist_value)


def persist_hash(event: PersistEvent, *, logger: Optional[logging.Logger] = None) -> None:
    """
    Incremental write of the entries in ``event.new_value``.

    Entries not named in the event are left alone; the key-set only grows.
    """
    entries = _serialize_entries(event, logger)
    if entries is None:
        return
    key_set = dict.fromkeys(_read_key_set(event.storage, event.storage_key, logger))
    for entry_id, persist_value in entries:
        event.storage.set_item(entry_key(event.storage_key, entry_id), persist_value)
        key_set.setdefault(entry_id, None)
    event.storage.set_item(event.storage_key, dump_key_set(key_set))


def persist_hash_reset(event: PersistEvent, *, logger: Optional[logging.Logger] = None) -> None:
    """
    Full rebuild of a HASH field from ``event.new_value``.

    Entry ids stored by a previous write but missing from the new value get their
    entry key removed, which is how entries deleted elsewhere are cleaned up.
    """
    entries = _serialize_entries(event, logger)
    if entries is None:
        return
    stale = dict.fromkeys(_read_key_set(event.storage, event.storage_key, logger))
    key_set: dict[str, None] = {}
    for entry_id, persist_value in entries:
        event.storage.set_item(entry_key(event.storage_key, entry_id), persist_value)
        key_set[entry_id] = None
        stale.pop(entry_id, None)
    for entry_id in stale:
        event.storage.remove_item(entry_key(event.storage_key, entry_id))
    event.storage.set_item(event.storage_key, dump_key_set(key_set))


def commit(
    events: Iterable[PersistEvent], *, logger: Optional[logging.Logger] = None, raise_errors: bool = True
) -> int:
    """
    Write each event by its policy and return how many were written.

    A failing event (typically a throwing user serializer) is logged and skipped so
    the rest of the batch still lands; with ``raise_errors`` the first failure is
    re-raised after the loop.
    """
    log = get_logger(logger)
    first_error: Optional[Exception] = None
    n = 0
    for event in events:
        try:
            if event.policy == EventPolicy.STRING:
                persist_string(event)
            elif event.policy == EventPolicy.HASH:
                persist_hash(event, logger=logger)
            elif event.policy == EventPolicy.HASH_RESET:
                persist_hash_reset(event, logger=logger)
            else:
                continue
        except Exception as e:  # noqa: BLE001
            log.exception("Persist of %s failed", event.storage_key)
            if first_error is None:
                first_error = e
            continue
        n += 1
    if raise_errors and first_error is not None:
        raise first_error
    return n


def _serialize_entries(event: PersistEvent, logger: Optional[logging.Logger] = None) -> Optional[List[Tuple[str, str]]]:
    value: Any = event.new_value
    if value is None:
        return []
    if not isinstance(value, Mapping):
        get_logger(logger).warning("HASH persist of %s skipped: value is %s, not a mapping", event.storage_key, type(value).__name__)
        return None
    out: List[Tuple[str, str]] = []
    for entry_id, entry_value in list(value.items()):
        if callable(entry_value):
            continue
        persist_value = event.serialize(entry_value)
        if persist_value is not None:
            out.append((str(entry_id), persist_value))
    return out


def _read_key_set(storage: SafeStorage, storage_key: str, logger: Optional[logging.Logger]) -> List[str]:
    stored = storage.get_item(storage_key)
    try:
        return load_key_set(stored)
    except ValueError as e:
        get_logger(logger).warning("Hash key-set under %s is unreadable (%s); treating as empty", storage_key, e)
        return []
