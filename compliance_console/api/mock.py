"""In-memory stand-in for the requirements service.

:class:`MockBackend` answers the same routes as the real service through an
:class:`httpx.MockTransport`, so :class:`~compliance_console.api.client.ApiClient`
runs unchanged against it. It is used when ``api.use_mocks`` is enabled and by
the test-suite, which can also queue failures for individual routes.
"""

from __future__ import annotations

import copy
import datetime
import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..util.time import is_due_within, is_overdue, iso_at_utc, utc_now_iso, utc_today

_REQUIREMENT_ROUTE = re.compile(r"^/requirements/(?P<rid>[^/]+)$")
_ACTION_ROUTE = re.compile(r"^/requirements/(?P<rid>[^/]+)/(?P<action>complete|archive|archive/restore)$")
_DOCUMENT_ROUTE = re.compile(r"^/documents/(?P<did>[^/]+)$")


@dataclass
class InjectedFailure:
    """Failure returned for matching requests while ``remaining`` is not zero."""

    method: str
    path: str
    status: int = 500
    detail: str | None = "Mock failure"
    remaining: int | None = 1

    def matches(self, method: str, path: str) -> bool:
        if self.remaining == 0:
            return False
        return self.method == method and (self.path == path or self.path == "*")


@dataclass
class RecordedRequest:
    method: str
    path: str
    params: dict[str, str]
    body: Any = None


@dataclass
class MockBackend:
    """Mutable in-memory data plus the routing that serves it."""

    requirements: list[dict[str, Any]] = field(default_factory=list)
    documents: list[dict[str, Any]] = field(default_factory=list)
    profile: dict[str, Any] = field(
        default_factory=lambda: {
            "user": {"email": "owner@example.com", "preferred_locale": "en"},
            "org": {"id": "org-1", "name": "Example Crew", "primary_trade": "electrical"},
        }
    )
    authenticated: bool = True
    processing_polls: int = 2
    requests: list[RecordedRequest] = field(default_factory=list)
    _failures: list[InjectedFailure] = field(default_factory=list)
    _document_polls: dict[str, int] = field(default_factory=dict)

    # setup -------------------------------------------------------------
    @classmethod
    def with_sample_data(cls, today: datetime.date | None = None) -> MockBackend:
        """Return a backend seeded with a small bilingual data set."""
        return cls(
            requirements=sample_requirements(today),
            documents=sample_documents(),
        )

    def fail(
        self,
        method: str,
        path: str,
        *,
        status: int = 500,
        detail: str | None = "Mock failure",
        times: int | None = 1,
    ) -> InjectedFailure:
        """Make the next ``times`` requests to ``method path`` fail.

        ``path`` may be ``"*"`` to match every path; ``times=None`` fails
        forever.
        """
        failure = InjectedFailure(method.upper(), path, status, detail, times)
        self._failures.append(failure)
        return failure

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def get(self, requirement_id: str) -> dict[str, Any] | None:
        for item in self.requirements:
            if item["id"] == requirement_id:
                return item
        return None

    def calls(self, method: str | None = None, path: str | None = None) -> list[RecordedRequest]:
        """Return recorded requests optionally filtered by method and path."""
        return [
            req
            for req in self.requests
            if (method is None or req.method == method.upper())
            and (path is None or req.path == path)
        ]

    # dispatch ----------------------------------------------------------
    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method.upper()
        path = request.url.path.rstrip("/") or "/"
        params = dict(request.url.params)
        body = json.loads(request.content) if request.content else None
        self.requests.append(RecordedRequest(method, path, params, body))

        for failure in self._failures:
            if failure.matches(method, path):
                if failure.remaining is not None:
                    failure.remaining -= 1
                payload = {"detail": failure.detail} if failure.detail is not None else {}
                return httpx.Response(failure.status, json=payload)

        if not self.authenticated:
            return _error(401, "Not authenticated")

        if path == "/auth/me":
            if method == "GET":
                return httpx.Response(200, json=copy.deepcopy(self.profile))
            if method == "PATCH":
                locale = (body or {}).get("preferred_locale")
                if locale is not None:
                    self.profile["user"]["preferred_locale"] = locale
                return httpx.Response(200, json=copy.deepcopy(self.profile))
        if path == "/requirements" and method == "GET":
            return httpx.Response(200, json=self._list_requirements(params))
        if path == "/requirements/triage/bulk" and method == "POST":
            return self._bulk_triage(body or {})
        match = _ACTION_ROUTE.match(path)
        if match and method == "POST":
            return self._action(match["rid"], match["action"], body or {})
        match = _REQUIREMENT_ROUTE.match(path)
        if match:
            if method == "GET":
                return self._requirement_response(match["rid"])
            if method == "PATCH":
                return self._patch(match["rid"], body or {})
        if path == "/documents" and method == "GET":
            return httpx.Response(200, json=self._list_documents(params))
        match = _DOCUMENT_ROUTE.match(path)
        if match and method == "GET":
            return self._document(match["did"])

        return _error(404, f"No mock implemented for {method} {path}")

    # requirements --------------------------------------------------------
    def _list_requirements(self, params: Mapping[str, str]) -> dict[str, Any]:
        limit = max(1, min(100, _int(params.get("limit"), 10)))
        requested_page = max(1, _int(params.get("page"), 1))
        due_tokens = [t for t in (params.get("due") or "").split(",") if t]
        status_tokens = {t.strip().upper() for t in (params.get("status") or "").split(",") if t.strip()}
        archived_view = params.get("archived") == "true"

        def visible(item: Mapping[str, Any]) -> bool:
            archived = _is_archived(item)
            if archived_view:
                return archived
            if archived:
                return False
            if status_tokens and item.get("status") not in status_tokens:
                return False
            if due_tokens and not any(_due_matches(item.get("due_date"), t) for t in due_tokens):
                return False
            return True

        filtered = [item for item in self.requirements if visible(item)]
        total = len(filtered)
        pages = max(1, math.ceil(total / limit))
        page = min(requested_page, pages)
        start = (page - 1) * limit
        return {
            "items": copy.deepcopy(filtered[start : start + limit]),
            "pagination": {"page": page, "limit": limit, "total": total},
        }

    def _requirement_response(self, requirement_id: str) -> httpx.Response:
        item = self.get(requirement_id)
        if item is None:
            return _error(404, "Requirement not found")
        return httpx.Response(200, json=copy.deepcopy(item))

    def _action(self, requirement_id: str, action: str, body: Mapping[str, Any]) -> httpx.Response:
        item = self.get(requirement_id)
        if item is None:
            return _error(404, "Requirement not found")
        attributes = item.setdefault("attributes", {})
        if action == "complete":
            item["status"] = "DONE"
            attributes["completed_by"] = body.get("completed_by")
            attributes["completed_at"] = utc_now_iso()
        elif action == "archive":
            reason = str(body.get("reason") or "").strip()
            if not reason:
                return _error(422, "Archive reason is required")
            if _is_archived(item):
                return _error(409, "Requirement already archived")
            item["archive_state"] = "archived"
            attributes["archive"] = {
                "state": "archived",
                "reason": reason,
                "requested_by": self.profile["user"]["email"],
                "requested_at": utc_now_iso(),
            }
        else:
            if item.get("archive_state") != "archived":
                return _error(409, "Requirement is not archived")
            item["archive_state"] = "restored"
            archive = dict(attributes.get("archive") or {})
            archive["state"] = "restored"
            attributes["archive"] = archive
        return httpx.Response(200, json=copy.deepcopy(item))

    def _bulk_triage(self, body: Mapping[str, Any]) -> httpx.Response:
        ids = body.get("requirement_ids") or []
        updated: list[dict[str, Any]] = []
        for requirement_id in ids:
            item = self.get(str(requirement_id))
            if item is None:
                return _error(404, f"Requirement {requirement_id} not found")
            for key in ("frequency", "anchor_type", "anchor_value", "due_date", "status"):
                if key in body:
                    item[key] = copy.deepcopy(body[key])
            attributes = item.setdefault("attributes", {})
            triage = dict(attributes.get("triage") or {})
            triage["resolved_at"] = utc_now_iso()
            if body.get("assignee"):
                attributes["assignee"] = body["assignee"]
                triage["assignee"] = body["assignee"]
            attributes["triage"] = triage
            updated.append(copy.deepcopy(item))
        return httpx.Response(200, json={"items": updated, "updated": len(updated)})

    def _patch(self, requirement_id: str, body: Mapping[str, Any]) -> httpx.Response:
        item = self.get(requirement_id)
        if item is None:
            return _error(404, "Requirement not found")
        for key in ("status", "due_date"):
            if key in body:
                item[key] = body[key]
        return httpx.Response(200, json=copy.deepcopy(item))

    # documents -----------------------------------------------------------
    def _list_documents(self, params: Mapping[str, str]) -> dict[str, Any]:
        limit = max(1, min(100, _int(params.get("limit"), 10)))
        return {
            "items": copy.deepcopy(self.documents[:limit]),
            "pagination": {"page": 1, "limit": limit, "total": len(self.documents)},
        }

    def _document(self, document_id: str) -> httpx.Response:
        for doc in self.documents:
            if doc["id"] != document_id:
                continue
            if doc.get("status") == "PROCESSING":
                polls = self._document_polls.get(document_id, 0) + 1
                self._document_polls[document_id] = polls
                if polls >= self.processing_polls:
                    doc["status"] = "READY"
                    doc["extracted_at"] = utc_now_iso()
            return httpx.Response(200, json=copy.deepcopy(doc))
        return _error(404, "Document not found")


def _error(status: int, detail: str) -> httpx.Response:
    return httpx.Response(status, json={"detail": detail})


def _int(raw: str | None, default: int) -> int:
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


def _is_archived(item: Mapping[str, Any]) -> bool:
    return item.get("archive_state") == "archived" or item.get("status") == "ARCHIVED"


def _due_matches(due_date: str | None, token: str) -> bool:
    if token == "overdue":
        return is_overdue(due_date)
    if token == "due7":
        return is_due_within(due_date, 7)
    if token == "due30":
        return is_due_within(due_date, 30)
    return True


# sample data -------------------------------------------------------------


def _requirement(
    rid: str,
    title_en: str,
    title_es: str,
    *,
    status: str,
    due: datetime.date | None,
    category: str,
    frequency: str | None = None,
    attributes: Mapping[str, Any] | None = None,
    archive_state: str | None = None,
) -> dict[str, Any]:
    return {
        "id": rid,
        "document_id": "doc-1",
        "document_name": "Site safety manual.pdf",
        "title_en": title_en,
        "title_es": title_es,
        "description_en": f"{title_en}.",
        "description_es": f"{title_es}.",
        "category": category,
        "frequency": frequency,
        "anchor_type": None,
        "anchor_value": None,
        "due_date": iso_at_utc(due, hour=12) if due else None,
        "status": status,
        "source_ref": None,
        "next_due": None,
        "archive_state": archive_state,
        "attributes": dict(attributes or {}),
    }


def sample_requirements(today: datetime.date | None = None) -> list[dict[str, Any]]:
    """Return a varied set of requirement records relative to ``today``."""
    base = today or utc_today()
    day = datetime.timedelta(days=1)
    return [
        _requirement(
            "req-1", "Inspect fire extinguishers", "Inspeccionar extintores",
            status="OPEN", due=base - 3 * day, category="Fire safety", frequency="MONTHLY",
        ),
        _requirement(
            "req-2", "Renew contractor license", "Renovar licencia de contratista",
            status="OPEN", due=base + 5 * day, category="Licensing", frequency="ANNUAL",
        ),
        _requirement(
            "req-3", "Review ladder safety training", "Revisar capacitación de escaleras",
            status="REVIEW", due=base + 20 * day, category="Training", frequency="QUARTERLY",
        ),
        _requirement(
            "req-4", "Post OSHA poster", "Publicar cartel de OSHA",
            status="PENDING_REVIEW", due=None, category="Postings",
            attributes={"triage": {"reasons": ["missing_due_date", "missing_frequency"]}},
        ),
        _requirement(
            "req-5", "Calibrate gas detectors", "Calibrar detectores de gas",
            status="PENDING_REVIEW", due=base + 10 * day, category="Equipment",
            attributes={"triage": {"reasons": ["ambiguous_frequency"], "assignee": "sam@example.com"}},
        ),
        _requirement(
            "req-6", "File quarterly tax report", "Presentar informe fiscal trimestral",
            status="DONE", due=base + 40 * day, category="Finance", frequency="QUARTERLY",
        ),
        _requirement(
            "req-7", "Keep old vehicle logs", "Conservar registros de vehículos antiguos",
            status="OPEN", due=None, category="Records", archive_state="archived",
            attributes={
                "archive": {
                    "state": "archived",
                    "reason": "Vehicle sold",
                    "requested_by": "owner@example.com",
                    "requested_at": iso_at_utc(base - 30 * day),
                }
            },
        ),
    ]


def sample_documents() -> list[dict[str, Any]]:
    return [
        {
            "id": "doc-1",
            "name": "Site safety manual.pdf",
            "status": "READY",
            "requirement_count": 7,
            "created_at": utc_now_iso(),
            "extracted_at": utc_now_iso(),
        },
        {
            "id": "doc-2",
            "name": "Insurance policy.pdf",
            "status": "PROCESSING",
            "requirement_count": 0,
            "created_at": utc_now_iso(),
            "extracted_at": None,
        },
    ]
