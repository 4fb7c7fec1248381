from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Dict, Optional, Tuple


def read_json(path: str) -> Tuple[bool, Dict[str, Any], Optional[str]]:
    if not os.path.exists(path):
        return False, {}, "missing"
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
        if not isinstance(obj, dict):
            return False, {}, "not_object"
        return True, obj, None
    except json.JSONDecodeError as e:
        return False, {}, f"corrupt_json:{e}"
    except OSError as e:
        return False, {}, str(e)


def atomic_write_json(path: str, obj: Dict[str, Any]) -> None:
    """
    Write to a temp file in the target directory, fsync, then replace.
    A crash mid-write leaves the previous file intact.
    """
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_storage_", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2, ensure_ascii=False, sort_keys=True)
            f.write("\n")
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError:
                pass
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.remove(tmp)
        except OSError:
            pass
