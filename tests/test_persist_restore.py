from __future__ import annotations

import logging

from cnpersist.core.persist.keys import entry_key, field_key


def _field_ctx(storage, state, field_id, **field_options):
    from cnpersist.core.persist.context import mix_options, produce_field_persist_context, produce_store_persist_context
    from cnpersist.core.persist.models import PersistFactoryOptions

    factory = PersistFactoryOptions(storage=storage)
    mixed = mix_options({"states": {field_id: field_options or True}}, factory, state.keys())
    store_ctx = produce_store_persist_context(factory, "s", state, mixed)
    return produce_field_persist_context(field_id, mixed.states[field_id], store_ctx)


def test_string_field_restored_from_storage(storage, buffer):
    from cnpersist.core.persist.restore import restore_field

    storage.set_item(field_key("s", "todo"), '{"done": 2}')
    state = {"todo": {"done": 0}}
    ctx = _field_ctx(storage, state, "todo")

    assert restore_field(ctx, buffer) is True
    assert state["todo"] == {"done": 2}
    assert len(buffer) == 0


def test_first_run_persists_initial_value(storage, buffer, timers):
    from cnpersist.core.persist.models import EventPolicy
    from cnpersist.core.persist.restore import restore_field

    state = {"title": "hello"}
    ctx = _field_ctx(storage, state, "title")

    assert restore_field(ctx, buffer) is False
    assert buffer.get_pending(ctx.persist_key).policy == EventPolicy.STRING

    timers.fire_all()
    assert storage.get_item(field_key("s", "title")) == '"hello"'


def test_falsy_initial_value_is_not_persisted(storage, buffer):
    from cnpersist.core.persist.restore import restore_field

    for value in (0, "", [], {}, None):
        state = {"f": value}
        assert restore_field(_field_ctx(storage, state, "f"), buffer) is False
    assert len(buffer) == 0


def test_hash_first_run_emits_reset(storage, buffer):
    from cnpersist.core.persist.models import EventPolicy
    from cnpersist.core.persist.restore import restore_field

    state = {"users": {"u1": {"name": "a"}}}
    ctx = _field_ctx(storage, state, "users", policy="HASH")

    restore_field(ctx, buffer)
    assert buffer.get_pending(ctx.persist_key).policy == EventPolicy.HASH_RESET


def test_deserializer_returning_none_keeps_initial_value(storage, buffer):
    from cnpersist.core.persist.restore import restore_field

    storage.set_item(field_key("s", "f"), "garbage")
    state = {"f": "init"}
    ctx = _field_ctx(storage, state, "f", deserialize=lambda _s: None)

    assert restore_field(ctx, buffer) is True
    assert state["f"] == "init"


def test_hash_restore_runs_post_handler_on_whole_mapping(storage, buffer):
    from cnpersist.core.persist.restore import restore_field

    fk = field_key("s", "nodes")
    storage.set_item(fk, '["a", "b", "gone"]')
    storage.set_item(entry_key(fk, "a"), '{"next": "b"}')
    storage.set_item(entry_key(fk, "b"), '{"next": null}')

    calls = []

    def link(mapping):
        calls.append(dict(mapping))
        return {k: {"next": mapping.get(v["next"]) if v["next"] else None} for k, v in mapping.items()}

    state = {"nodes": {}}
    ctx = _field_ctx(storage, state, "nodes", policy="HASH", deserialize_post_handler=link)

    assert restore_field(ctx, buffer) is True
    assert calls == [{"a": {"next": "b"}, "b": {"next": None}}]
    assert state["nodes"]["a"]["next"] == {"next": None}
    assert state["nodes"]["b"] == {"next": None}


def test_hash_restore_with_unreadable_key_set_keeps_state(storage, buffer, caplog):
    from cnpersist.core.persist.restore import restore_field

    storage.set_item(field_key("s", "m"), '"not a list"')
    state = {"m": {"x": 1}}
    ctx = _field_ctx(storage, state, "m", policy="HASH")

    with caplog.at_level(logging.WARNING, logger="cnpersist"):
        restore_field(ctx, buffer)

    assert state["m"] == {"x": 1}
    assert "field not restored" in caplog.text


def test_hydrate_runs_hooks_once_around_batch(storage, buffer):
    from cnpersist.core.persist.restore import hydrate_store

    storage.set_item(field_key("s", "a"), "1")
    storage.set_item(field_key("s", "b"), "2")
    state = {"a": 0, "b": 0, "c": 5}
    ctxs = [_field_ctx(storage, state, f) for f in ("a", "b", "c")]

    calls = []
    restored = hydrate_store(
        ctxs,
        buffer,
        before_restore=lambda arg: calls.append(("before", arg, dict(state))),
        after_restore=lambda arg: calls.append(("after", arg, dict(state))),
        hook_arg="ctx",
    )

    assert restored == 2
    assert calls == [
        ("before", "ctx", {"a": 0, "b": 0, "c": 5}),
        ("after", "ctx", {"a": 1, "b": 2, "c": 5}),
    ]
    # c had nothing stored, so its current value is queued for persistence
    assert buffer.pending_keys() == [field_key("s", "c")]
