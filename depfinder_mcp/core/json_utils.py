"""
JSON utilities backed by orjson.

Thin wrappers that give orjson the string-based ``dumps``/``loads`` interface
of the standard json module, so callers can ``import json_utils as json``.
"""

import json as _stdlib_json
from pathlib import Path
from typing import Any

import orjson

JSONDecodeError = _stdlib_json.JSONDecodeError


def _default(obj: Any) -> Any:
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def loads(s: str | bytes) -> Any:
    """
    Parse JSON with orjson.
    Wraps orjson.JSONDecodeError ensuring compatibility with stdlib json.
    """
    if isinstance(s, str):
        s = s.encode("utf-8")
    try:
        return orjson.loads(s)
    except orjson.JSONDecodeError as e:
        raise JSONDecodeError(str(e), s.decode("utf-8", errors="replace"), 0) from e


def dumps(obj: Any, indent: int | None = None, sort_keys: bool = False) -> str:
    """
    Serialize object to JSON with orjson.

    Note: orjson only supports 2-space indentation when indent is provided.
    Sets and paths are serialized as sorted lists and strings.
    """
    option = 0
    if indent is not None:
        option |= orjson.OPT_INDENT_2
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, default=_default, option=option).decode("utf-8")


__all__ = ["loads", "dumps", "JSONDecodeError"]
