"""Layered merge of configuration dicts.

Sections and pages merge key by key. A keymapping binding
(``keymappings.<page>.<action>``) is atomic: whatever the later layer binds
replaces the earlier binding whole, whether it is a list, a shorthand string
or a ``{type: ...}`` mapping.
"""

from __future__ import annotations

from typing import Any

# Key paths whose values never merge, only replace
_ATOMIC_DEPTH = {"keymappings": 2}


def _is_atomic(path: tuple[str, ...]) -> bool:
    if not path:
        return False
    depth = _ATOMIC_DEPTH.get(path[0])
    return depth is not None and len(path) > depth


def deep_merge(
    base: dict[str, Any],
    override: dict[str, Any],
    _path: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Merge ``override`` over ``base`` into a new dict.

    None never overrides, so a layer can leave a value unset. Lists replace,
    which is how ``[]`` unbinds an action.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        path = (*_path, key)
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict) and not _is_atomic(path):
            merged[key] = deep_merge(current, value, path)
        else:
            merged[key] = value
    return merged


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Fold layers lowest-priority first."""
    result: dict[str, Any] = {}
    for layer in filter(None, configs):
        result = deep_merge(result, layer)
    return result
