"""HTTP client for the remote requirements service."""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx

from ..core.model import (
    AuthProfile,
    BulkTriageResult,
    DocumentRecord,
    Requirement,
    RequirementPage,
    bulk_result_from_dict,
    document_from_dict,
    page_from_dict,
    profile_from_dict,
    requirement_from_dict,
)
from ..settings import ApiSettings
from ..telemetry import log_debug_payload, log_event
from .errors import ApiError

QueryParams = Mapping[str, str | int | bool | None]


class ApiClient:
    """Session-based JSON client for the requirements service.

    Cookies set by the service are kept on the underlying
    :class:`httpx.AsyncClient` and sent with every later request.
    """

    _DEFAULT_HEADERS = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }

    def __init__(
        self,
        settings: ApiSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cookies: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize client with API ``settings``.

        ``transport`` replaces the network layer; the in-memory backend and
        the tests pass an :class:`httpx.MockTransport` here.
        """
        self.settings = settings
        self._transport = transport
        self._cookies = dict(cookies or {})
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def build_url(self, path: str, params: QueryParams | None = None) -> str:
        """Return absolute URL for ``path`` with ``None`` params dropped."""
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        query = _clean_params(params)
        if query:
            url = f"{url}?{urlencode(query, safe=',')}"
        return url

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.settings.timeout_seconds),
                headers=self._DEFAULT_HEADERS,
                cookies=self._cookies,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ApiClient:
        self._ensure_client()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    async def _request_async(
        self,
        method: str,
        path: str,
        *,
        params: QueryParams | None = None,
        json_body: Any | None = None,
    ) -> httpx.Response:
        """Execute *method* request asynchronously and return the response."""
        client = self._ensure_client()
        return await client.request(
            method,
            path,
            params=_clean_params(params) or None,
            json=json_body,
        )

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: QueryParams | None = None,
        json_body: Any | None = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body.

        Raises :class:`ApiError` for transport failures and non-success
        responses. ``204 No Content`` yields ``None``.
        """
        start = time.monotonic()
        request_info = {"method": method, "path": path, "params": dict(params or {})}
        log_event("API_REQUEST", request_info, level=logging.DEBUG)
        log_debug_payload(
            "API_REQUEST_BODY",
            {"direction": "outbound", **request_info, "body": json_body},
        )
        try:
            resp = await self._request_async(
                method, path, params=params, json_body=json_body
            )
        except httpx.HTTPError as exc:
            error = ApiError.from_transport(exc)
            log_event(
                "API_ERROR",
                {**request_info, "error": error.to_dict()},
                start_time=start,
                level=logging.WARNING,
            )
            raise error from exc

        log_debug_payload(
            "API_RESPONSE_BODY",
            {
                "direction": "inbound",
                "status": resp.status_code,
                "headers": list(resp.headers.items()),
                "body": resp.text,
            },
        )
        if not resp.is_success:
            error = ApiError.from_response(resp)
            log_event(
                "API_ERROR",
                {**request_info, "error": error.to_dict()},
                start_time=start,
                level=logging.WARNING,
            )
            raise error

        log_event(
            "API_RESPONSE",
            {**request_info, "status": resp.status_code},
            start_time=start,
            level=logging.DEBUG,
        )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return json.loads(resp.text)
        except json.JSONDecodeError as exc:
            raise ApiError(
                "Invalid JSON in response", resp.status_code, resp.text
            ) from exc

    # requirements ------------------------------------------------------
    async def list_requirements(self, params: QueryParams | None = None) -> RequirementPage:
        data = await self.request_json("GET", "/requirements", params=params)
        return page_from_dict(data or {})

    async def get_requirement(self, requirement_id: str) -> Requirement:
        data = await self.request_json("GET", f"/requirements/{requirement_id}")
        return requirement_from_dict(data)

    async def complete_requirement(
        self, requirement_id: str, completed_by: str | None
    ) -> Requirement:
        data = await self.request_json(
            "POST",
            f"/requirements/{requirement_id}/complete",
            json_body={"completed_by": completed_by},
        )
        return requirement_from_dict(data)

    async def archive_requirement(self, requirement_id: str, reason: str) -> Requirement:
        data = await self.request_json(
            "POST",
            f"/requirements/{requirement_id}/archive",
            json_body={"reason": reason},
        )
        return requirement_from_dict(data)

    async def restore_requirement(self, requirement_id: str) -> Requirement:
        data = await self.request_json(
            "POST", f"/requirements/{requirement_id}/archive/restore", json_body={}
        )
        return requirement_from_dict(data)

    async def bulk_triage(self, payload: Mapping[str, Any]) -> BulkTriageResult:
        data = await self.request_json(
            "POST", "/requirements/triage/bulk", json_body=dict(payload)
        )
        return bulk_result_from_dict(data or {})

    async def update_requirement(
        self, requirement_id: str, payload: Mapping[str, Any]
    ) -> Requirement:
        data = await self.request_json(
            "PATCH", f"/requirements/{requirement_id}", json_body=dict(payload)
        )
        return requirement_from_dict(data)

    # profile -----------------------------------------------------------
    async def get_profile(self) -> AuthProfile:
        data = await self.request_json("GET", "/auth/me")
        return profile_from_dict(data or {})

    async def update_profile(self, payload: Mapping[str, Any]) -> None:
        await self.request_json("PATCH", "/auth/me", json_body=dict(payload))

    # documents ---------------------------------------------------------
    async def list_documents(self, params: QueryParams | None = None) -> list[DocumentRecord]:
        data = await self.request_json("GET", "/documents", params=params)
        items = (data or {}).get("items") or []
        return [document_from_dict(item) for item in items]

    async def get_document(self, document_id: str) -> DocumentRecord:
        data = await self.request_json("GET", f"/documents/{document_id}")
        return document_from_dict(data)


def _clean_params(params: QueryParams | None) -> dict[str, str]:
    """Drop ``None`` values and stringify the rest like ``URLSearchParams``."""
    if not params:
        return {}
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned


__all__ = ["ApiClient", "QueryParams"]
