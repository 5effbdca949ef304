"""Deep merge engine for configuration trees.

Merge rules (``deep_merge(base, override)``):
- Keys only in ``base`` are kept unchanged.
- Mappings on both sides are merged recursively.
- Sequences in ``override`` replace the base sequence wholly.
- Scalars in ``override`` replace the base scalar.
- ``UNSET`` in ``override`` means "no override supplied"; the base value is kept.
- ``None`` and empty collections in ``override`` are real values and do override.

Neither input is mutated and the result shares no mutable containers with them.
Frozen trees (see ``freeze_tree``) are accepted on either side and come out
as plain dicts and lists.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Final

from clusterforge.errors import MergeAmbiguity


class _UnsetType:
    """Marker for a key that is present but carries no override."""

    _instance: _UnsetType | None = None

    def __new__(cls) -> _UnsetType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _UnsetType:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _UnsetType:
        return self


UNSET: Final = _UnsetType()


def is_unset(value: Any) -> bool:
    """Return True if ``value`` is the ``UNSET`` marker."""
    return value is UNSET


def freeze_tree(value: Any) -> Any:
    """Return a read-only copy of a configuration tree.

    Mappings become ``MappingProxyType`` views over fresh dicts and lists
    become tuples, recursively. Scalars are returned as-is.

    Example:
        >>> frozen = freeze_tree({"a": {"b": [1, 2]}})
        >>> frozen["a"]["b"]
        (1, 2)
    """
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_tree(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_tree(item) for item in value)
    return value


def thaw_tree(value: Any) -> Any:
    """Return a mutable deep copy of a (possibly frozen) tree."""
    if isinstance(value, Mapping):
        return {key: thaw_tree(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw_tree(item) for item in value]
    return copy.deepcopy(value)


def deep_merge(
    base: Mapping[str, Any],
    override: Mapping[str, Any],
    *,
    strict: bool = False,
) -> dict[str, Any]:
    """Recursively merge ``override`` on top of ``base``.

    Args:
        base: Tree providing default values.
        override: Partial tree whose supplied values take precedence.
        strict: Raise MergeAmbiguity when an override replaces a mapping
            with ``None`` instead of letting the override win.

    Returns:
        A new merged tree.

    Raises:
        MergeAmbiguity: Only when ``strict`` is True.

    Example:
        >>> deep_merge({"a": 1, "b": 2}, {"a": 5})
        {'a': 5, 'b': 2}
        >>> deep_merge({"a": [1, 2]}, {"a": [3]})
        {'a': [3]}
    """
    return _merge(base, override, strict=strict, path=())


def merge_all(
    trees: Iterable[Mapping[str, Any]],
    *,
    strict: bool = False,
) -> dict[str, Any]:
    """Fold ``trees`` left to right through ``deep_merge``.

    Later trees take precedence over earlier ones.
    """
    result: dict[str, Any] = {}
    for tree in trees:
        result = _merge(result, tree, strict=strict, path=())
    return result


def _merge(
    base: Mapping[str, Any],
    override: Mapping[str, Any],
    *,
    strict: bool,
    path: tuple[str, ...],
) -> dict[str, Any]:
    result: dict[str, Any] = {key: thaw_tree(value) for key, value in base.items()}

    for key, override_value in override.items():
        if override_value is UNSET:
            continue

        base_value = base.get(key, UNSET)

        if isinstance(override_value, Mapping):
            nested_base = base_value if isinstance(base_value, Mapping) else {}
            result[key] = _merge(nested_base, override_value, strict=strict, path=(*path, key))
            continue

        if strict and override_value is None and isinstance(base_value, Mapping):
            raise MergeAmbiguity(".".join((*path, key)))

        result[key] = thaw_tree(override_value)

    return result
