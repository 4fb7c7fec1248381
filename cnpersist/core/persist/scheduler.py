from __future__ import annotations

import threading
from typing import Any, Callable, Optional, Protocol


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay_seconds: float, fn: Callable[[], None]) -> TimerHandle:
    t = threading.Timer(delay_seconds, fn)
    t.name = "cnpersist-debounce"
    t.daemon = True
    return t


class DebounceScheduler:
    """
    Single-slot trailing-edge debounce.

    One revocable timer handle at most; every schedule() revokes the pending
    handle and arms a new one, so the callback runs ``interval_ms`` after the
    last call. With ``interval_ms <= 0`` schedule() runs the callback inline.
    """

    def __init__(self, interval_ms: int, callback: Callable[[], None], *, timer_factory: Optional[TimerFactory] = None):
        self.interval_ms = int(interval_ms)
        self._callback = callback
        self._timer_factory = timer_factory or thread_timer
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None

    @property
    def enabled(self) -> bool:
        return self.interval_ms > 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._handle is not None

    def schedule(self) -> None:
        if not self.enabled:
            self._callback()
            return
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            handle: Any = None

            def _fire() -> None:
                with self._lock:
                    if self._handle is not handle:
                        # revoked after the timer thread already woke up
                        return
                    self._handle = None
                self._callback()

            handle = self._timer_factory(self.interval_ms / 1000.0, _fire)
            self._handle = handle
            handle.start()

    def cancel(self) -> bool:
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return False
        handle.cancel()
        return True
