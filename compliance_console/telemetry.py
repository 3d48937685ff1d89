"""Structured events for requests, workflows and background sync.

Every event is logged on the package logger with its JSON form under the
``json`` attribute of the record, which :class:`~compliance_console.log.JsonFormatter`
writes to the JSONL log. Events emitted inside :func:`action_scope` share an
``action_id``, so one archive or triage save can be followed from
``MUTATION_START`` through the ``API_*`` events it causes to ``MUTATION_DONE``.
"""

from __future__ import annotations

import contextvars
import json
import logging
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from .log import logger
from .util.json import make_json_safe

# session material that must never reach the logs
SENSITIVE_KEYS = {
    "authorization",
    "cookie",
    "set-cookie",
    "token",
    "secret",
    "password",
    "api_key",
}

REDACTED = "[REDACTED]"

_action_var: contextvars.ContextVar[dict[str, str] | None] = contextvars.ContextVar(
    "compliance_console_action", default=None
)


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: (
                REDACTED
                if isinstance(k, str) and k.lower() in SENSITIVE_KEYS
                else _sanitize_value(v)
            )
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_sanitize_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_sanitize_value(v) for v in value)
    return value


def sanitize(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy ``data`` with credentials and cookies replaced by ``[REDACTED]``."""
    return _sanitize_value(dict(data))


def event_area(event: str) -> str:
    """Return the lower-cased prefix of ``event``: ``API_ERROR`` -> ``api``."""
    return event.split("_", 1)[0].lower()


@contextmanager
def action_scope(action: str, action_id: str | None = None) -> Iterator[str]:
    """Tag every event logged inside the block with ``action`` and an id.

    Nested scopes keep the outer id so a bulk dismiss and its per-record
    archive calls stay correlated. The id is yielded.
    """
    outer = _action_var.get()
    if outer is not None and action_id is None:
        action_id = outer["action_id"]
    current = {"action": action, "action_id": action_id or uuid.uuid4().hex[:12]}
    token = _action_var.set(current)
    try:
        yield current["action_id"]
    finally:
        _action_var.reset(token)


def current_action() -> dict[str, str] | None:
    """Return the active ``{"action", "action_id"}`` pair, if any."""
    current = _action_var.get()
    return dict(current) if current is not None else None


def _base_record(event: str) -> dict[str, Any]:
    data: dict[str, Any] = {"event": event, "area": event_area(event)}
    current = _action_var.get()
    if current is not None:
        data.update(current)
    return data


def log_event(
    event: str,
    payload: Mapping[str, Any] | None = None,
    *,
    start_time: float | None = None,
    level: int = logging.INFO,
) -> None:
    """Log ``event`` with a redacted payload.

    The record carries ``area`` (``api``, ``mutation``, ``cache``,
    ``document`` ...), the active action from :func:`action_scope`,
    ``size_bytes`` of the payload and, when ``start_time`` (a
    :func:`time.monotonic` reading) is given, ``duration_ms``.
    """
    data = _base_record(event)
    if payload:
        safe_payload = make_json_safe(sanitize(dict(payload)))
        data["payload"] = safe_payload
        data["size_bytes"] = len(
            json.dumps(safe_payload, ensure_ascii=False).encode("utf-8"),
        )
    else:
        data["payload"] = {}
        data["size_bytes"] = 0
    if start_time is not None:
        data["duration_ms"] = int((time.monotonic() - start_time) * 1000)
    logger.log(level, event, extra={"json": data})


def log_debug_payload(
    event: str,
    payload: Mapping[str, Any] | Sequence[Any] | str | None = None,
) -> None:
    """Log request and response bodies, only when DEBUG is enabled."""
    if not logger.isEnabledFor(logging.DEBUG):
        return

    record = _base_record(event)
    record["level"] = "DEBUG"
    if payload is None:
        logger.debug(event, extra={"json": record})
        return
    if isinstance(payload, Mapping):
        safe_payload: Any = make_json_safe(sanitize(dict(payload)))
    elif isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        safe_payload = make_json_safe(_sanitize_value(list(payload)))
    else:
        safe_payload = make_json_safe(payload)
    record["payload"] = safe_payload
    logger.debug(
        f"{event} {json.dumps(safe_payload, ensure_ascii=False)}",
        extra={"json": record},
    )
