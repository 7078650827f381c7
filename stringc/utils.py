"""Helpers for option dictionaries and value setters in StringC."""

from __future__ import annotations
from collections.abc import Callable, Mapping
from typing import Any


type ValueSetter[K, V] = V | Callable[[K], V] | Mapping[K, V]
"""
Either a constant, a mapping from keys to values, or a callable computing the
value for a key. Callables signal a missing value by raising :class:`KeyError`.
"""


def apply_setter[K, V](setter: ValueSetter[K, V], key: K) -> V | None:
    """The value of the setter on the given key, or :obj:`None` if it has none."""
    if isinstance(setter, Mapping):
        return setter.get(key)
    if not callable(setter):
        return setter
    try:
        return setter(key)
    except KeyError:
        return None


def dict_deep_copy[T](val: T) -> T:
    """Copies nested dictionaries, sharing all other values."""
    if type(val) is not dict:
        return val
    return {k: dict_deep_copy(v) for k, v in val.items()}  # type: ignore[return-value]


def dict_deep_update(to_update: Any, new: Any) -> Any:
    """
    Merges ``new`` into ``to_update`` when both are dictionaries, recursing on
    shared keys, and returns the updated dictionary. In every other case the
    result is ``new`` and nothing is changed.
    """
    if type(to_update) is not dict or type(new) is not dict:
        return new
    for k, v in new.items():
        to_update[k] = dict_deep_update(to_update.get(k), v) if k in to_update else v
    return to_update
