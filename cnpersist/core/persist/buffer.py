from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from cnpersist.core.errors import BufferStateError
from cnpersist.core.logger import get_logger
from cnpersist.core.persist.models import EventPolicy, PersistEvent
from cnpersist.core.persist.policies import commit
from cnpersist.core.persist.scheduler import DebounceScheduler, TimerFactory
from cnpersist.core.persist.serialization import Serializer
from cnpersist.core.storage.base import SafeStorage


class PersistBuffer:
    """
    Pending persist events keyed by storage key, flushed on one debounce timer.

    - one event per storage key; a later emit replaces it (last value wins)
    - HASH entry writes merge into the pending event's mapping in place
    - every emit/merge re-arms the single timer; interval <= 0 flushes inline
    - flush detaches the buffer under the lock, so producers running during a
      flush fill a fresh buffer
    """

    def __init__(
        self,
        *,
        global_debounce_ms: int = 500,
        timer_factory: Optional[TimerFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = get_logger(logger)
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._events: Dict[str, PersistEvent] = {}
        self._scheduler = self._produce_scheduler(global_debounce_ms)

    @property
    def global_debounce_ms(self) -> int:
        return self._scheduler.interval_ms

    def set_global_debounce(self, global_debounce_ms: int) -> None:
        """
        Install a scheduler with a new interval.

        The old timer is revoked; events already buffered are handed to the new
        scheduler rather than dropped.
        """
        old = self._scheduler
        self._scheduler = self._produce_scheduler(global_debounce_ms)
        old.cancel()
        if len(self):
            self._scheduler.schedule()

    # ---- producers ----
    def emit(self, policy: EventPolicy, storage: SafeStorage, storage_key: str, value: Any, serialize: Serializer) -> None:
        policy = EventPolicy(policy)
        if policy == EventPolicy.HASH_RESET and isinstance(value, Mapping):
            # entry merges mutate the pending mapping; never let that be live state
            value = dict(value)
        with self._lock:
            self._events[storage_key] = PersistEvent(
                policy=policy, storage_key=storage_key, new_value=value, serialize=serialize, storage=storage
            )
        self._scheduler.schedule()

    def merge_entry(
        self, storage: SafeStorage, storage_key: str, entry_id: str, entry_value: Any, serialize: Serializer
    ) -> None:
        """
        Record one entry write of a HASH field.

        Repeated writes within one debounce window accumulate in the pending
        event, so each touched entry is written once at flush time.
        """
        with self._lock:
            pending = self._events.get(storage_key)
            if pending is None:
                self._events[storage_key] = PersistEvent(
                    policy=EventPolicy.HASH,
                    storage_key=storage_key,
                    new_value={str(entry_id): entry_value},
                    serialize=serialize,
                    storage=storage,
                )
            else:
                if not isinstance(pending.new_value, MutableMapping):
                    raise BufferStateError(
                        "Pending event for a HASH entry write does not hold a mapping.",
                        storage_key=storage_key,
                        policy=pending.policy.value,
                    )
                if pending.policy == EventPolicy.STRING:
                    pending.new_value = dict(pending.new_value)
                pending.new_value[str(entry_id)] = entry_value
        self._scheduler.schedule()

    # ---- consumer ----
    def flush(self, *, raise_errors: bool = True) -> int:
        """
        Commit every pending event. A failing event doesn't stop the others; with
        ``raise_errors`` the first failure is re-raised once the batch is done.
        """
        with self._lock:
            if not self._events:
                return 0
            events, self._events = self._events, {}
        n = commit(list(events.values()), logger=self.logger, raise_errors=raise_errors)
        self.logger.debug("Flushed %d persist event(s)", n)
        return n

    def flush_now(self) -> int:
        self._scheduler.cancel()
        return self.flush()

    def close(self) -> int:
        return self.flush_now()

    # ---- introspection ----
    def pending_keys(self) -> List[str]:
        with self._lock:
            return list(self._events.keys())

    def get_pending(self, storage_key: str) -> Optional[PersistEvent]:
        with self._lock:
            return self._events.get(storage_key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    # ---- internals ----
    def _produce_scheduler(self, global_debounce_ms: int) -> DebounceScheduler:
        interval = int(global_debounce_ms)
        if interval <= 0:
            return DebounceScheduler(interval, self.flush, timer_factory=self._timer_factory)
        return DebounceScheduler(interval, self._on_timer, timer_factory=self._timer_factory)

    def _on_timer(self) -> None:
        # runs on the timer thread; there is no caller left to propagate to
        try:
            self.flush(raise_errors=False)
        except Exception:  # noqa: BLE001
            self.logger.exception("Debounced persist flush failed")
