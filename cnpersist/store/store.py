from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

WatchCallback = Callable[[Any], None]
ActionListener = Callable[[str, Tuple[Any, ...]], None]
Action = Callable[..., Any]
Disposer = Callable[[], None]


@dataclass(eq=False)
class _Watcher:
    callback: WatchCallback
    deep: bool


class Store:
    """
    Key-based observable state container.

    - ``state`` is the raw dict; writing to it directly notifies nobody
    - ``set``/``store[field] = v`` replace a field and notify its watchers
    - ``touch`` reports an in-place change of a field; only deep watchers hear it
    - ``dispatch`` runs a named action, then notifies action listeners
    """

    def __init__(self, store_id: str, state: Dict[str, Any], actions: Optional[Dict[str, Action]] = None):
        self.id = str(store_id)
        self.state: Dict[str, Any] = dict(state)
        self._actions: Dict[str, Action] = dict(actions or {})
        self._lock = threading.Lock()
        self._watchers: Dict[str, List[_Watcher]] = {}
        self._action_listeners: List[ActionListener] = []
        self._persist: Optional[Callable[[], Any]] = None
        self._hydrate: Optional[Callable[[], Any]] = None

    # ---- state ----
    def get(self, field: str, default: Any = None) -> Any:
        return self.state.get(field, default)

    def set(self, field: str, value: Any) -> None:
        self.state[field] = value
        self._notify(field, value, deep_only=False)

    def patch(self, values: Dict[str, Any]) -> None:
        for field, value in values.items():
            self.set(field, value)

    def touch(self, field: str) -> None:
        self._notify(field, self.state.get(field), deep_only=True)

    def __getitem__(self, field: str) -> Any:
        return self.state[field]

    def __setitem__(self, field: str, value: Any) -> None:
        self.set(field, value)

    def __contains__(self, field: object) -> bool:
        return field in self.state

    def watch(self, field: str, callback: WatchCallback, *, deep: bool = False) -> Disposer:
        if not callable(callback):
            raise ValueError("callback must be callable")
        w = _Watcher(callback=callback, deep=bool(deep))
        with self._lock:
            self._watchers.setdefault(str(field), []).append(w)

        def _dispose() -> None:
            with self._lock:
                ws = self._watchers.get(str(field)) or []
                if w in ws:
                    ws.remove(w)

        return _dispose

    # ---- actions ----
    def has_action(self, name: str) -> bool:
        return name in self._actions

    def dispatch(self, name: str, *args: Any) -> Any:
        action = self._actions.get(name)
        if action is None:
            raise KeyError(f"store '{self.id}' has no action '{name}'")
        result = action(self, *args)
        with self._lock:
            listeners = list(self._action_listeners)
        for listener in listeners:
            listener(name, args)
        return result

    def on_action(self, listener: ActionListener) -> Disposer:
        if not callable(listener):
            raise ValueError("listener must be callable")
        with self._lock:
            self._action_listeners.append(listener)

        def _dispose() -> None:
            with self._lock:
                if listener in self._action_listeners:
                    self._action_listeners.remove(listener)

        return _dispose

    # ---- persistence hooks (installed by the persist plugin) ----
    def install_persistence(self, *, persist: Callable[[], Any], hydrate: Callable[[], Any]) -> None:
        self._persist = persist
        self._hydrate = hydrate

    def persist(self) -> Any:
        """Write every persisted field to storage now. No-op when the store isn't persisted."""
        if self._persist is None:
            return None
        return self._persist()

    def hydrate(self) -> Any:
        """Reload every persisted field from storage. No-op when the store isn't persisted."""
        if self._hydrate is None:
            return None
        return self._hydrate()

    # ---- internals ----
    def _notify(self, field: str, value: Any, *, deep_only: bool) -> None:
        with self._lock:
            watchers = list(self._watchers.get(str(field)) or [])
        for w in watchers:
            if deep_only and not w.deep:
                continue
            w.callback(value)
