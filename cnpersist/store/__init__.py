"""
Minimal observable store used as the host of the persistence plugin.
"""

from cnpersist.store.registry import PluginContext, StoreRegistry
from cnpersist.store.store import Store

__all__ = ["PluginContext", "Store", "StoreRegistry"]
