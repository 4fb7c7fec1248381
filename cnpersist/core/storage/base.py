from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from cnpersist.core.errors import StorageAccessError
from cnpersist.core.logger import get_logger


@runtime_checkable
class StorageLike(Protocol):
    """get/set/remove key-value backend. Any call may raise."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class SafeStorage:
    """
    Wraps a backend so that no backend failure escapes the persistence core.

    Failures are logged when debug is enabled and the call degrades to a no-op
    (reads return None).
    """

    def __init__(self, backend: StorageLike, *, debug: bool = False, logger: Optional[logging.Logger] = None):
        if isinstance(backend, SafeStorage):
            backend = backend.backend
        self.backend = backend
        self.debug = bool(debug)
        self.logger = get_logger(logger)

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self.backend.get_item(key)
        except Exception as e:  # noqa: BLE001
            self._report("get_item", key, e)
            return None

    def set_item(self, key: str, value: str) -> None:
        try:
            self.backend.set_item(key, value)
        except Exception as e:  # noqa: BLE001
            self._report("set_item", key, e)

    def remove_item(self, key: str) -> None:
        try:
            self.backend.remove_item(key)
        except Exception as e:  # noqa: BLE001
            self._report("remove_item", key, e)

    def _report(self, op: str, key: str, exc: Exception) -> None:
        if not self.debug:
            return
        err = StorageAccessError(f"Storage {op} failed for key '{key}'.", op=op, key=key, error=str(exc)[:300])
        self.logger.warning("%s", err, exc_info=exc)

    def __repr__(self) -> str:
        return f"SafeStorage({self.backend!r}, debug={self.debug})"
