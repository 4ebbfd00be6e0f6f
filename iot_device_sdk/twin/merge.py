"""Helpers for applying twin patches and walking property trees.

Patches use delete-on-null semantics: a ``None`` value anywhere in a merge
result removes that key. Lists are values, never merged element-wise.
"""

import copy
from typing import Any, Dict, Iterator, Tuple

_MISSING = object()


def prune_nulls(value: Any) -> Any:
    """Return a deep copy of ``value`` with every ``None`` removed."""
    if isinstance(value, dict):
        return {k: prune_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [prune_nulls(v) for v in value if v is not None]
    return copy.deepcopy(value)


def merge_patch(target: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``patch`` into ``target`` in place.

    Args:
        target: Property tree to update
        patch: Patch to apply; ``None`` values delete keys

    Returns:
        ``target``, for chaining
    """
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
            continue

        current = target.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merge_patch(current, value)
        else:
            target[key] = prune_nulls(value)
    return target


def iter_paths(tree: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """
    Yield ``(dotted_path, value)`` for every key in ``tree``, depth first.

    A parent is yielded before its children.

        >>> list(iter_paths({"x": {"y": 1}}))
        [('x', {'y': 1}), ('x.y', 1)]
    """
    for key, value in tree.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        yield path, value
        if isinstance(value, dict):
            yield from iter_paths(value, path)


def get_at_path(tree: Dict[str, Any], path: str, default: Any = _MISSING) -> Any:
    """
    Resolve a dotted path inside ``tree``.

    Raises:
        KeyError: If the path does not resolve and no default is given
    """
    node: Any = tree
    if path:
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                if default is _MISSING:
                    raise KeyError(path)
                return default
            node = node[part]
    return node
