"""Dot-notation lookup over decoded JSON payloads.

Paths are dot-separated segments; numeric segments index into arrays.
A pipe separates alternative paths that are tried left to right, e.g.
``productId|repositoryId|id`` or ``imageSet.0.url|images.0``.
"""

from typing import Any, Dict, List, Optional, Union

# Decoded JSON value: None, bool, int, float, str, list or dict.
JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


def resolve_simple_path(obj: JsonValue, path: str) -> JsonValue:
    """Resolve a single dot path (no alternatives).

    Args:
        obj: Decoded JSON value to walk
        path: Dot-separated path such as ``records.0.variants``

    Returns:
        The value found, or None if any segment is missing
    """
    if not path:
        return obj

    current = obj
    for segment in path.split("."):
        if current is None:
            return None
        if isinstance(current, list):
            if not segment.isdigit():
                return None
            index = int(segment)
            if index >= len(current):
                return None
            current = current[index]
        elif isinstance(current, dict):
            current = current.get(segment)
        else:
            return None
    return current


def resolve_path(obj: JsonValue, path: Optional[str]) -> JsonValue:
    """Resolve a path with pipe-separated fallbacks.

    The first alternative that yields something other than None or an
    empty string wins. ``0`` and ``False`` are real values and win too.

    Args:
        obj: Decoded JSON value to walk
        path: Path expression, e.g. ``displayName|colorDescription|name``

    Returns:
        The first non-empty value, or None
    """
    if obj is None or not path:
        return None

    for alternative in path.split("|"):
        value = resolve_simple_path(obj, alternative.strip())
        if value is None or value == "":
            continue
        return value
    return None
