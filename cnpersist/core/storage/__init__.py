"""
Storage backends for persisted state.

Backends implement get_item/set_item/remove_item; the persistence core only
talks to them through SafeStorage so backend failures never escape.
"""

from cnpersist.core.storage.base import SafeStorage, StorageLike
from cnpersist.core.storage.file import JsonFileStorage, default_storage
from cnpersist.core.storage.memory import MemoryStorage

__all__ = ["SafeStorage", "StorageLike", "JsonFileStorage", "MemoryStorage", "default_storage"]
