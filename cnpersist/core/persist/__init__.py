"""
Debounced, coalescing persistence of store state fields.

Field changes become persist events in a shared buffer; one debounce timer
flushes the buffer through the STRING / HASH / HASH_RESET write policies.
Restore reads the same keys back on startup or on demand.
"""

from cnpersist.core.persist.buffer import PersistBuffer
from cnpersist.core.persist.keys import entry_key, field_key
from cnpersist.core.persist.models import (
    EventPolicy,
    FieldPersistOptions,
    PersistEvent,
    PersistFactoryOptions,
    PersistPolicy,
    StorePersistOptions,
)
from cnpersist.core.persist.plugin import PersistPlugin, StoreBinding, create_persist_plugin
from cnpersist.core.persist.restore import hydrate_store, restore_field

__all__ = [
    "EventPolicy",
    "FieldPersistOptions",
    "PersistBuffer",
    "PersistEvent",
    "PersistFactoryOptions",
    "PersistPlugin",
    "PersistPolicy",
    "StoreBinding",
    "StorePersistOptions",
    "create_persist_plugin",
    "entry_key",
    "field_key",
    "hydrate_store",
    "restore_field",
]
