from __future__ import annotations

FIELD_KEY_PREFIX = "cn-"
ENTRY_KEY_PREFIX = "cn#"


def field_key(store_key: str, field_id: str) -> str:
    """
    Storage key of a field: ``cn-<len(store_key)>-<store_key>-<field_id>``.

    The store key length makes the split point unambiguous, so ("a-b", "c") and
    ("a", "b-c") map to different keys.
    """
    store_key = str(store_key)
    return f"{FIELD_KEY_PREFIX}{len(store_key)}-{store_key}-{field_id}"


def entry_key(field_storage_key: str, entry_id: str) -> str:
    """
    Storage key of one entry of a HASH field: ``cn#<len(field_key)>#<field_key>-<entry_id>``.

    Field keys always start with ``cn-`` and entry keys with ``cn#``, so the two
    never collide; the length prefix keeps entry keys of different fields apart.
    """
    field_storage_key = str(field_storage_key)
    return f"{ENTRY_KEY_PREFIX}{len(field_storage_key)}#{field_storage_key}-{entry_id}"
