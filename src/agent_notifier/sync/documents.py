"""Shape narrowing for loosely typed JSON documents.

Each helper returns the narrowed value, ``None`` when the value is missing,
or raises MalformedConfigError when the value is present with the wrong
shape. User data is never coerced into the expected shape.
"""

from typing import Any, Optional

from agent_notifier.errors import MalformedConfigError


class _Missing:
    """Marker for an absent key (distinct from JSON null)."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def narrow_object(value: Any, where: str) -> Optional[dict[str, Any]]:
    """Narrow a value to a JSON object.

    Args:
        value: Value to check, or MISSING.
        where: Location used in the error message, e.g. ``hooks.Stop[0]``.
    """
    if value is MISSING:
        return None
    if not isinstance(value, dict):
        raise MalformedConfigError(f"expected {where} to be an object, got {_type_name(value)}")
    return value


def narrow_array(value: Any, where: str) -> Optional[list[Any]]:
    """Narrow a value to a JSON array."""
    if value is MISSING:
        return None
    if not isinstance(value, list):
        raise MalformedConfigError(f"expected {where} to be an array, got {_type_name(value)}")
    return value


def narrow_object_array(value: Any, where: str) -> Optional[list[dict[str, Any]]]:
    """Narrow a value to an array whose items are all objects."""
    items = narrow_array(value, where)
    if items is None:
        return None
    return [narrow_object(item, f"{where}[{index}]") for index, item in enumerate(items)]


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return type(value).__name__
