from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Optional


class MemoryStorage:
    """Dict-backed storage. Values are kept as the strings they were written as."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(str(key))

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[str(key)] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(str(key), None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data
