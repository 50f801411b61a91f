"""Utility functions for DriftMap."""

from __future__ import annotations

import json
import hashlib
from typing import Any
from urllib.parse import unquote


def field_path(parent_path: str, name: str) -> str:
    """Node id segment for an object property."""
    return f"{parent_path}.{name}"


def key_path(parent_path: str, key: str) -> str:
    """Node id segment for an arbitrary map key."""
    return f"{parent_path}['{key}']"


def index_path(parent_path: str, index: int) -> str:
    """Node id segment for an array member."""
    return f"{parent_path}[{index}]"


def split_pointer(pointer: str) -> list[str]:
    """
    Split a JSON pointer into unescaped segments.

    Args:
        pointer: A pointer such as '/components/schemas/Pet' (a leading '#' is allowed)

    Returns:
        List of segments with '~1', '~0' and percent escapes decoded
    """
    pointer = pointer.lstrip('#')
    if not pointer or pointer == '/':
        return []
    parts = pointer.lstrip('/').split('/')
    return [unquote(p).replace('~1', '/').replace('~0', '~') for p in parts]


def encode_value(value: Any) -> str:
    """Encode a structured value as compact, key-sorted JSON."""
    return json.dumps(value, sort_keys=True, default=str, ensure_ascii=False)


def hash_value(value: Any) -> str:
    """Content hash of any loaded value."""
    return hashlib.sha256(encode_value(value).encode('utf-8')).hexdigest()


def values_equal(a: Any, b: Any) -> bool:
    """Compare two loaded values, treating bool and int as distinct."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (dict, list)) or isinstance(b, (dict, list)):
        return encode_value(a) == encode_value(b)
    return a == b


def format_scalar(value: Any) -> str:
    """Render a scalar the way it reads in a YAML document."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return encode_value(value)
    return str(value)
