from __future__ import annotations

import pytest

from cnpersist.core.persist.serialization import (
    compose_serializer,
    default_deserialize,
    default_serialize,
    dump_key_set,
    load_key_set,
)


def test_default_serialize_keeps_unicode():
    assert default_serialize({"name": "Zoë"}) == '{"name": "Zoë"}'


def test_default_deserialize_treats_empty_as_absent():
    assert default_deserialize("") is None
    assert default_deserialize(None) is None
    assert default_deserialize("[1, 2]") == [1, 2]


def test_compose_serializer_masks_before_user_serializer():
    seen = []

    def ser(v):
        seen.append(v)
        return "x"

    s = compose_serializer(lambda v: {"kept": v["kept"]}, ser)
    assert s({"kept": 1, "dropped": 2}) == "x"
    assert seen == [{"kept": 1}]


def test_compose_serializer_without_filter_is_the_serializer():
    assert compose_serializer(None, None) is default_serialize


def test_key_set_is_a_json_list_of_strings():
    assert dump_key_set(["a", 2]) == '["a", "2"]'
    assert load_key_set('["a", "b", "a"]') == ["a", "b"]
    assert load_key_set(None) == []
    assert load_key_set("") == []


def test_key_set_rejects_non_list():
    with pytest.raises(ValueError):
        load_key_set('{"a": 1}')
    with pytest.raises(ValueError):
        load_key_set("not json")
