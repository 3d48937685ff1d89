"""JSON serialisation helpers."""

from __future__ import annotations

import datetime
from collections.abc import Callable, Mapping, Sequence
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any


def make_json_safe(
    value: Any,
    *,
    default: Callable[[Any], str] | None = None,
    _depth: int = 0,
    max_depth: int = 32,
) -> Any:
    """Return a structure compatible with :func:`json.dumps`.

    Mappings keep their (stringified) keys, sequences become lists, enums
    collapse to their values, dates to ISO strings and dataclasses to dicts.
    Anything else falls back to ``default`` (``repr`` unless given).
    """

    if default is None:
        default = repr
    if _depth >= max_depth:
        return default(value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return make_json_safe(value.value, default=default, _depth=_depth + 1)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return make_json_safe(asdict(value), default=default, _depth=_depth + 1)
    if isinstance(value, Mapping):
        return {
            str(key): make_json_safe(item, default=default, _depth=_depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, (set, frozenset)):
        items = [make_json_safe(item, default=default, _depth=_depth + 1) for item in value]
        try:
            return sorted(items)
        except TypeError:
            return items
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [make_json_safe(item, default=default, _depth=_depth + 1) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return default(value)
