from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from cnpersist.store.store import Action, Store

StateFactory = Union[Callable[[], Dict[str, Any]], Dict[str, Any]]


@dataclass
class PluginContext:
    store: Store
    persist_options: Any
    registry: "StoreRegistry"


Plugin = Callable[[PluginContext], Any]


class StoreRegistry:
    """
    Creates stores on first use and runs every installed plugin once per store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._plugins: List[Plugin] = []
        self._stores: Dict[str, Store] = {}

    def use(self, plugin: Plugin) -> "StoreRegistry":
        if not callable(plugin):
            raise ValueError("plugin must be callable")
        with self._lock:
            self._plugins.append(plugin)
        return self

    def define_store(
        self,
        store_id: str,
        *,
        state: StateFactory,
        actions: Optional[Dict[str, Action]] = None,
        persist: Any = None,
    ) -> Callable[[], Store]:
        """Return an accessor that builds the store on first call and returns the same instance afterwards."""

        def use_store() -> Store:
            with self._lock:
                existing = self._stores.get(store_id)
                if existing is not None:
                    return existing
                initial = state() if callable(state) else copy.deepcopy(state)
                store = Store(store_id, initial, actions)
                self._stores[store_id] = store
                plugins = list(self._plugins)
            for plugin in plugins:
                plugin(PluginContext(store=store, persist_options=persist, registry=self))
            return store

        return use_store

    def get(self, store_id: str) -> Optional[Store]:
        with self._lock:
            return self._stores.get(store_id)

    def stores(self) -> List[Store]:
        with self._lock:
            return list(self._stores.values())
