"""Toast-style user notifications."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Protocol, TextIO

from .telemetry import log_event


class Notifier(Protocol):
    """Deliver short messages to the user."""

    def success(self, message: str, description: str | None = None) -> None: ...

    def error(self, message: str, description: str | None = None) -> None: ...

    def info(self, message: str, description: str | None = None) -> None: ...

    def warning(self, message: str, description: str | None = None) -> None: ...


_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    kind: str
    message: str
    description: str | None = None


class LoggingNotifier:
    """Record notifications as ``TOAST`` telemetry events only."""

    def _emit(self, kind: str, message: str, description: str | None) -> None:
        payload = {"kind": kind, "message": message}
        if description:
            payload["description"] = description
        log_event("TOAST", payload, level=_LEVELS[kind])

    def success(self, message: str, description: str | None = None) -> None:
        self._emit("success", message, description)

    def error(self, message: str, description: str | None = None) -> None:
        self._emit("error", message, description)

    def info(self, message: str, description: str | None = None) -> None:
        self._emit("info", message, description)

    def warning(self, message: str, description: str | None = None) -> None:
        self._emit("warning", message, description)


class ConsoleNotifier(LoggingNotifier):
    """Print notifications to a stream in addition to logging them."""

    _PREFIX = {"success": "✔", "info": "ℹ", "warning": "!", "error": "✖"}

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def _emit(self, kind: str, message: str, description: str | None) -> None:
        super()._emit(kind, message, description)
        stream = self._stream or (sys.stderr if kind == "error" else sys.stdout)
        line = f"{self._PREFIX[kind]} {message}"
        if description:
            line = f"{line}: {description}"
        print(line, file=stream)


class RecordingNotifier(LoggingNotifier):
    """Keep every notification in :attr:`messages` for inspection."""

    def __init__(self) -> None:
        self.messages: list[Notification] = []

    def _emit(self, kind: str, message: str, description: str | None) -> None:
        super()._emit(kind, message, description)
        self.messages.append(Notification(kind, message, description))

    def of_kind(self, kind: str) -> list[str]:
        return [note.message for note in self.messages if note.kind == kind]

    def clear(self) -> None:
        self.messages.clear()


__all__ = [
    "Notifier",
    "Notification",
    "LoggingNotifier",
    "ConsoleNotifier",
    "RecordingNotifier",
]
