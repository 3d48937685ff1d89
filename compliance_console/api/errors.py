"""Typed errors raised by the HTTP client."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

import httpx

DEFAULT_MESSAGE = "Request failed"


class ErrorKind(str, Enum):
    """Coarse classification of a failed request."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    CLIENT = "client"
    SERVER = "server"
    NETWORK = "network"


def kind_for_status(status: int) -> ErrorKind:
    """Return :class:`ErrorKind` matching HTTP ``status``."""
    if status == 401:
        return ErrorKind.UNAUTHENTICATED
    if status == 404:
        return ErrorKind.NOT_FOUND
    if 400 <= status < 500:
        return ErrorKind.CLIENT
    if status >= 500:
        return ErrorKind.SERVER
    return ErrorKind.NETWORK


class ApiError(Exception):
    """Request to the requirements service failed.

    ``message`` is the server-provided ``detail`` when one is available, else
    the HTTP reason phrase, else ``"Request failed"``. ``status`` is ``0`` for
    transport failures where no response was received.
    """

    def __init__(
        self,
        message: str,
        status: int,
        payload: Any = None,
        *,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload
        self.kind = kind if kind is not None else kind_for_status(status)

    @property
    def is_unauthenticated(self) -> bool:
        return self.kind is ErrorKind.UNAUTHENTICATED

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND

    @property
    def is_client_error(self) -> bool:
        """Return ``True`` for any 4xx response."""
        return 400 <= self.status < 500

    @property
    def has_server_message(self) -> bool:
        """Return ``True`` when the service answered, as opposed to a transport failure."""
        return self.kind is not ErrorKind.NETWORK

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status": self.status,
            "kind": self.kind.value,
            "payload": self.payload,
        }

    @classmethod
    def from_response(cls, response: httpx.Response) -> ApiError:
        """Build an error from a non-success ``response``."""
        try:
            payload: Any = json.loads(response.text) if response.text else None
        except json.JSONDecodeError:
            payload = None
        detail = payload.get("detail") if isinstance(payload, dict) else None
        if not isinstance(detail, str):
            detail = None
        message = detail or response.reason_phrase or DEFAULT_MESSAGE
        return cls(message, response.status_code, payload)

    @classmethod
    def from_transport(cls, exc: httpx.HTTPError) -> ApiError:
        """Build an error for a request that never produced a response."""
        return cls(str(exc) or DEFAULT_MESSAGE, 0, None, kind=ErrorKind.NETWORK)


__all__ = ["ApiError", "ErrorKind", "kind_for_status", "DEFAULT_MESSAGE"]
