from __future__ import annotations

import argparse
import json
import sys

from cnpersist.core.persist.keys import entry_key, field_key
from cnpersist.core.persist.serialization import load_key_set
from cnpersist.core.storage import JsonFileStorage


def main() -> int:
    ap = argparse.ArgumentParser(description="Print the persisted fields of one store from a JSON storage file.")
    ap.add_argument("path", help="storage file (e.g. runtime/local_storage.json)")
    ap.add_argument("store_key", help="store persist key (store id unless a custom key is configured)")
    ap.add_argument("fields", nargs="+", help="state field ids")
    ap.add_argument("--hash", action="append", default=[], help="field id persisted with the HASH policy (repeatable)")
    args = ap.parse_args()

    storage = JsonFileStorage(args.path)
    out = {}
    for field_id in args.fields:
        key = field_key(args.store_key, field_id)
        stored = storage.get_item(key)
        if stored is None:
            out[field_id] = {"key": key, "present": False}
            continue
        if field_id not in args.hash:
            out[field_id] = {"key": key, "present": True, "value": stored}
            continue
        try:
            entry_ids = load_key_set(stored)
        except ValueError as e:
            out[field_id] = {"key": key, "present": True, "error": f"unreadable key-set: {e}"}
            continue
        entries = {}
        for entry_id in entry_ids:
            ek = entry_key(key, entry_id)
            entries[entry_id] = {"key": ek, "value": storage.get_item(ek)}
        out[field_id] = {"key": key, "present": True, "key_set": entry_ids, "entries": entries}

    print(json.dumps(out, indent=2, ensure_ascii=False, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
