from __future__ import annotations

import pytest


def test_set_notifies_watchers_of_that_field_only():
    from cnpersist.store.store import Store

    s = Store("s", {"a": 1, "b": 2})
    seen = []
    s.watch("a", seen.append)

    s["a"] = 10
    s.set("b", 20)
    s.patch({"a": 11})
    assert seen == [10, 11]


def test_touch_reaches_deep_watchers_only():
    from cnpersist.store.store import Store

    s = Store("s", {"items": []})
    shallow, deep = [], []
    s.watch("items", shallow.append)
    s.watch("items", deep.append, deep=True)

    s.state["items"].append(1)
    s.touch("items")
    assert shallow == []
    assert deep == [[1]]


def test_raw_state_writes_are_silent():
    from cnpersist.store.store import Store

    s = Store("s", {"a": 1})
    seen = []
    s.watch("a", seen.append)
    s.state["a"] = 5
    assert seen == []
    assert s["a"] == 5 and s.get("a") == 5 and "a" in s


def test_watch_disposer_removes_only_that_watcher():
    from cnpersist.store.store import Store

    s = Store("s", {"a": 0})
    one, two = [], []
    stop = s.watch("a", one.append)
    s.watch("a", two.append)

    stop()
    stop()
    s["a"] = 1
    assert one == []
    assert two == [1]


def test_dispatch_runs_action_then_listeners():
    from cnpersist.store.store import Store

    order = []

    def add(store, n):
        order.append(("action", store.state["total"]))
        store.state["total"] += n
        return store.state["total"]

    s = Store("s", {"total": 0}, {"add": add})
    stop = s.on_action(lambda name, args: order.append((name, args, s["total"])))

    assert s.dispatch("add", 5) == 5
    assert order == [("action", 0), ("add", (5,), 5)]

    stop()
    s.dispatch("add", 1)
    assert len(order) == 3
    assert s.has_action("add") and not s.has_action("sub")


def test_dispatch_unknown_action_raises():
    from cnpersist.store.store import Store

    with pytest.raises(KeyError):
        Store("s", {}).dispatch("nope")


def test_persist_and_hydrate_are_noops_until_installed():
    from cnpersist.store.store import Store

    s = Store("s", {})
    assert s.persist() is None
    assert s.hydrate() is None

    s.install_persistence(persist=lambda: 3, hydrate=lambda: 4)
    assert s.persist() == 3
    assert s.hydrate() == 4


def test_registry_builds_each_store_once_and_runs_plugins():
    from cnpersist.store.registry import StoreRegistry

    seen = []
    registry = StoreRegistry().use(lambda ctx: seen.append((ctx.store.id, ctx.persist_options)))
    use_a = registry.define_store("a", state=lambda: {"x": []}, persist=True)

    first = use_a()
    assert use_a() is first
    assert registry.get("a") is first
    assert registry.stores() == [first]
    assert seen == [("a", True)]


def test_registry_copies_dict_state():
    from cnpersist.store.registry import StoreRegistry

    template = {"items": []}
    registry = StoreRegistry()
    store = registry.define_store("a", state=template)()
    store.state["items"].append(1)
    assert template == {"items": []}


def test_registry_rejects_non_callable_plugin():
    from cnpersist.store.registry import StoreRegistry

    with pytest.raises(ValueError):
        StoreRegistry().use("not a plugin")
