"""Member resolution and context snapshots.

Conditions and effects are referenced by name and looked up on the context
when a trigger runs. Snapshots are independent deep copies, so a result kept
in history never observes later mutations of the live context.
"""

from __future__ import annotations

import copy
import enum
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from typing import Any

from soter.utils.logging import get_logger

logger = get_logger("utils.snapshot")


class _Missing:
    """Sentinel for a name that does not resolve on the context."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: dict) -> "_Missing":
        return self


MISSING = _Missing()


def resolve_member(context: Any, name: str) -> Any:
    """
    Look up a condition or effect on the context.

    Mappings are looked up by key, other objects by attribute. Methods come
    back bound to the context.

    Returns:
        The resolved value, or MISSING when the name is absent
    """
    if isinstance(context, Mapping):
        return context.get(name, MISSING)
    return getattr(context, name, MISSING)


def to_plain(value: Any) -> Any:
    """
    Render a value as JSON-safe plain data.

    Callables are dropped; dataclasses and objects become dicts of their
    data attributes; enums become their values.
    """
    return _to_plain(value, set())


def _to_plain(value: Any, seen: set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return _to_plain(value.value, seen)
    if callable(value) and not isinstance(value, type):
        return None

    marker = id(value)
    if marker in seen:
        return None
    seen = seen | {marker}

    if isinstance(value, Mapping):
        return {
            str(key): _to_plain(item, seen)
            for key, item in value.items()
            if not callable(item)
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_plain(item, seen) for item in value]
    if is_dataclass(value) and not isinstance(value, type):
        try:
            return _to_plain(asdict(value), seen)
        except TypeError:
            pass
    if hasattr(value, "to_dict"):
        return _to_plain(value.to_dict(), seen)
    if hasattr(value, "__dict__"):
        return {
            key: _to_plain(item, seen)
            for key, item in vars(value).items()
            if not key.startswith("_") and not callable(item)
        }
    return str(value)


def snapshot(context: Any) -> Any:
    """
    Take an independent deep copy of the context.

    Uses copy.deepcopy so the snapshot keeps the context's type. Contexts
    holding values that cannot be copied (locks, open files, generators)
    are rendered as plain data instead; behavior is not preserved.
    """
    try:
        return copy.deepcopy(context)
    except (TypeError, copy.Error, RecursionError) as e:
        logger.debug(
            "snapshot_fallback",
            context_type=type(context).__name__,
            error=str(e),
        )
        return to_plain(context)
