from __future__ import annotations

import pytest

from cnpersist.core.persist.buffer import PersistBuffer
from cnpersist.core.storage.base import SafeStorage

from .helpers.fakes import FakeTimers, RecordingStorage


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def safe_storage(storage):
    return SafeStorage(storage, debug=True)


@pytest.fixture
def buffer(timers):
    """Debounced buffer driven by fake timers (500 ms window)."""
    return PersistBuffer(global_debounce_ms=500, timer_factory=timers)


@pytest.fixture
def make_registry(storage, timers):
    """
    Builds a StoreRegistry with the persist plugin installed.
    Storage defaults to the shared RecordingStorage fixture.
    """
    from cnpersist.core.persist.plugin import create_persist_plugin
    from cnpersist.store.registry import StoreRegistry

    def _make(**factory_options):
        factory_options.setdefault("storage", storage)
        plugin = create_persist_plugin(factory_options, timer_factory=timers)
        registry = StoreRegistry().use(plugin)
        return registry, plugin

    return _make
