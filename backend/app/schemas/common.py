from __future__ import annotations

from typing import Any

# Limits for free-form JSON payloads (response meta) to prevent memory exhaustion
_MAX_DICT_KEYS = 100
_MAX_DICT_DEPTH = 5
_MAX_DICT_STR_LEN = 20_000  # max total serialised size in characters


def _check_depth(obj: Any, current: int = 0) -> int:
    """Return the maximum nesting depth of a dict/list structure."""
    if current > _MAX_DICT_DEPTH:
        return current
    if isinstance(obj, dict):
        if not obj:
            return current
        return max(_check_depth(v, current + 1) for v in obj.values())
    if isinstance(obj, list):
        if not obj:
            return current
        return max(_check_depth(v, current + 1) for v in obj)
    return current


def validate_json_dict(v: dict | None, field_name: str) -> dict | None:
    if v is None:
        return v
    if len(v) > _MAX_DICT_KEYS:
        msg = f"{field_name} exceeds maximum of {_MAX_DICT_KEYS} keys"
        raise ValueError(msg)
    if _check_depth(v) > _MAX_DICT_DEPTH:
        msg = f"{field_name} exceeds maximum nesting depth of {_MAX_DICT_DEPTH}"
        raise ValueError(msg)
    if len(repr(v)) > _MAX_DICT_STR_LEN:
        msg = f"{field_name} exceeds maximum serialised size"
        raise ValueError(msg)
    return v
