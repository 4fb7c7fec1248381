from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

# A mask is a tree: {key: True} selects a leaf, {key: {...}} descends into it.
KeyMask = Mapping[str, Any]
ValueFilter = Callable[[Any], Any]


def validate_mask(mask: Any, *, path: str = "") -> Dict[str, Any]:
    if not isinstance(mask, Mapping):
        raise ValueError(f"mask{path or ''} must be a mapping")
    out: Dict[str, Any] = {}
    for k, v in mask.items():
        where = f"{path}.{k}"
        if v is True:
            out[str(k)] = True
        elif isinstance(v, Mapping):
            out[str(k)] = validate_mask(v, path=where)
        else:
            raise ValueError(f"mask{where} must be True or a nested mask")
    return out


def exclude_keys(value: Any, mask: KeyMask) -> Any:
    """
    Return ``value`` without the masked keys.

    Only levels touched by the mask are shallow-copied; untouched subtrees are
    shared with the original.
    """
    if not isinstance(value, Mapping) or not mask:
        return value
    out = dict(value)
    for k, sub in mask.items():
        if k not in out:
            continue
        if sub is True:
            del out[k]
        else:
            out[k] = exclude_keys(out[k], sub)
    return out


def include_keys(value: Any, mask: KeyMask) -> Any:
    """Return a new mapping holding only the masked keys of ``value``."""
    if not isinstance(value, Mapping):
        return value
    out: Dict[str, Any] = {}
    for k, sub in mask.items():
        if k not in value:
            continue
        if sub is True:
            out[k] = value[k]
        elif isinstance(sub, _ExcludeUnder):
            out[k] = exclude_keys(value[k], sub.excludes)
        else:
            out[k] = include_keys(value[k], sub)
    return out


def subtract_mask(includes: KeyMask, excludes: KeyMask) -> Dict[str, Any]:
    """
    Effective include-only mask when both includes and excludes are configured.

    An excluded leaf removes the include entirely. An excluded subtree under an
    included leaf (``True``) can't be expressed as an include without knowing the
    value's keys, so that case is kept as a nested exclusion marker and applied at
    filter time.
    """
    out: Dict[str, Any] = {}
    for k, inc in includes.items():
        exc = excludes.get(k)
        if exc is None:
            out[k] = inc
        elif exc is True:
            continue
        elif inc is True:
            out[k] = _ExcludeUnder(exc)
        else:
            out[k] = subtract_mask(inc, exc)
    return out


class _ExcludeUnder(dict):
    """Include this key, minus the wrapped exclude mask."""

    def __init__(self, excludes: KeyMask):
        super().__init__()
        self.excludes = excludes


def produce_filter(includes: Optional[KeyMask], excludes: Optional[KeyMask]) -> Optional[ValueFilter]:
    # an empty includes mask is explicit: persist nothing
    if includes is not None:
        effective = subtract_mask(includes, excludes) if excludes else includes
        return lambda v: include_keys(v, effective)
    if excludes:
        return lambda v: exclude_keys(v, excludes)
    return None
