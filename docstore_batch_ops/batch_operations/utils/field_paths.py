"""
Dotted field path helpers shared by preview, field reads and the in-memory store.
"""

from typing import Any, Dict

# Returned by get_field when no default is given and a segment is absent
MISSING = object()


def get_field(data: Dict[str, Any], field_path: str, default: Any = MISSING) -> Any:
    """Resolve a dotted field path, returning ``default`` when any segment is absent."""
    current: Any = data
    for key in field_path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def set_field_path(data: Dict[str, Any], field_path: str, value: Any) -> None:
    """Set a dotted field path, creating intermediate maps as needed."""
    keys = field_path.split(".")
    current = data
    for key in keys[:-1]:
        nested = current.get(key)
        if not isinstance(nested, dict):
            nested = {}
            current[key] = nested
        current = nested
    current[keys[-1]] = value
