from __future__ import annotations

import logging
import os
import threading
from typing import Dict, List, Optional

from cnpersist.core.logger import get_logger
from cnpersist.core.storage.io import atomic_write_json, read_json


class JsonFileStorage:
    """
    Durable storage kept as one JSON object file.

    The file is loaded lazily on first access and rewritten atomically on every
    set/remove. A corrupt or non-object file is treated as empty; the next write
    replaces it.
    """

    def __init__(self, path: str, *, logger: Optional[logging.Logger] = None):
        self.path = str(path)
        self.logger = get_logger(logger)
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, str]] = None

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._load_locked().get(str(key))
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load_locked()
            data[str(key)] = str(value)
            atomic_write_json(self.path, data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._load_locked()
            if str(key) not in data:
                return
            del data[str(key)]
            atomic_write_json(self.path, data)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load_locked().keys())

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._load_locked())

    def reload(self) -> None:
        with self._lock:
            self._data = None

    def _load_locked(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data
        ok, data, err = read_json(self.path)
        if not ok:
            if err and err != "missing":
                self.logger.warning("Storage file %s unreadable (%s); starting empty", self.path, err)
            data = {}
        self._data = {str(k): v for k, v in data.items() if isinstance(v, str)}
        return self._data


_default_lock = threading.Lock()
_default_storage: Optional[JsonFileStorage] = None


def default_storage(runtime_dir: str = "runtime") -> JsonFileStorage:
    """Process-wide storage used when neither the factory nor the store names one."""
    global _default_storage
    with _default_lock:
        if _default_storage is None:
            _default_storage = JsonFileStorage(os.path.join(runtime_dir, "local_storage.json"))
        return _default_storage
