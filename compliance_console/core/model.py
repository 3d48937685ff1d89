"""Domain models for requirements synced from the compliance service."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..util.time import parse_date


class RawStatus(str, Enum):
    """Lifecycle status as stored by the service."""

    OPEN = "OPEN"
    REVIEW = "REVIEW"
    PENDING_REVIEW = "PENDING_REVIEW"
    READY = "READY"
    DONE = "DONE"
    ARCHIVED = "ARCHIVED"


class ArchiveState(str, Enum):
    """Retention state tracked independently from the raw status."""

    ACTIVE = "active"
    PENDING = "pending"
    ARCHIVED = "archived"
    RESTORED = "restored"
    DELETED = "deleted"


class Frequency(str, Enum):
    """Recurrence kinds a requirement can be triaged into."""

    BEFORE_EACH_USE = "BEFORE_EACH_USE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"
    EVERY_N_DAYS = "EVERY_N_DAYS"
    EVERY_N_WEEKS = "EVERY_N_WEEKS"
    EVERY_N_MONTHS = "EVERY_N_MONTHS"
    ONE_TIME = "ONE_TIME"

    @property
    def is_interval(self) -> bool:
        """Return ``True`` for the ``EVERY_N_*`` kinds."""
        return self in INTERVAL_KEYS

    @property
    def requires_due_date(self) -> bool:
        """Return ``False`` for kinds that are not scheduled on a date."""
        return self not in (Frequency.BEFORE_EACH_USE, Frequency.ONE_TIME)


INTERVAL_KEYS: dict[Frequency, str] = {
    Frequency.EVERY_N_DAYS: "days",
    Frequency.EVERY_N_WEEKS: "weeks",
    Frequency.EVERY_N_MONTHS: "months",
}


class AnchorType(str, Enum):
    """Reference point a recurring due date is computed from."""

    UPLOAD_DATE = "UPLOAD_DATE"
    ISSUE_DATE = "ISSUE_DATE"
    CALENDAR = "CALENDAR"
    FIRST_COMPLETION = "FIRST_COMPLETION"
    CUSTOM_DATE = "CUSTOM_DATE"


class DocumentStatus(str, Enum):
    """Processing state of an uploaded source document."""

    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TriageMeta:
    """Triage details stored under ``attributes.triage``."""

    reasons: tuple[str, ...] = ()
    assignee: str | None = None
    resolved_at: str | None = None


@dataclass(frozen=True)
class ArchiveMeta:
    """Archive request details stored under ``attributes.archive``."""

    state: str | None = None
    reason: str | None = None
    requested_by: str | None = None
    requested_at: str | None = None


def _text_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass
class Requirement:
    """Represent a compliance requirement as mirrored from the service."""

    id: str
    title_en: str = ""
    title_es: str = ""
    description_en: str = ""
    description_es: str = ""
    status: str = RawStatus.OPEN.value
    document_id: str | None = None
    document_name: str | None = None
    category: str | None = None
    frequency: str | None = None
    anchor_type: str | None = None
    anchor_value: dict[str, Any] | None = None
    due_date: datetime.date | None = None
    source_ref: str | None = None
    next_due: datetime.date | None = None
    archive_state: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    # lifecycle -------------------------------------------------------
    @property
    def raw_status(self) -> RawStatus | None:
        """Return :attr:`status` as :class:`RawStatus` or ``None`` if unknown."""
        try:
            return RawStatus(self.status)
        except ValueError:
            return None

    @property
    def is_pending_review(self) -> bool:
        return self.status == RawStatus.PENDING_REVIEW.value

    @property
    def triage(self) -> TriageMeta | None:
        """Return parsed ``attributes.triage`` when present."""
        raw = self.attributes.get("triage")
        if not isinstance(raw, Mapping):
            return None
        reasons = raw.get("reasons")
        return TriageMeta(
            reasons=tuple(str(r) for r in reasons) if isinstance(reasons, list) else (),
            assignee=_text_or_none(raw.get("assignee")),
            resolved_at=_text_or_none(raw.get("resolved_at")),
        )

    @property
    def archive(self) -> ArchiveMeta:
        """Return archive details, nested state taking precedence over the root field."""
        raw = self.attributes.get("archive")
        nested = raw if isinstance(raw, Mapping) else {}
        state = _text_or_none(nested.get("state")) or self.archive_state
        return ArchiveMeta(
            state=state,
            reason=_text_or_none(nested.get("reason")),
            requested_by=_text_or_none(nested.get("requested_by")),
            requested_at=_text_or_none(nested.get("requested_at")),
        )

    @property
    def assignee(self) -> str:
        """Return assignee from ``attributes`` before ``attributes.triage``."""
        root = _text_or_none(self.attributes.get("assignee"))
        if root is not None:
            return root
        triage = self.triage
        if triage is not None and triage.assignee is not None:
            return triage.assignee
        return ""

    @property
    def is_archived(self) -> bool:
        """Return ``True`` when the record sits on a retention hold."""
        return (
            self.archive_state == ArchiveState.ARCHIVED.value
            or self.status == RawStatus.ARCHIVED.value
        )

    # presentation ----------------------------------------------------
    def title_for(self, locale: str) -> str:
        return self.title_es if locale == "es" else self.title_en

    def description_for(self, locale: str) -> str:
        return self.description_es if locale == "es" else self.description_en


@dataclass(frozen=True)
class Pagination:
    """Server-reported paging window."""

    page: int = 1
    limit: int = 10
    total: int = 0


@dataclass(frozen=True)
class RequirementPage:
    """One page of the requirements list endpoint."""

    items: tuple[Requirement, ...] = ()
    pagination: Pagination = field(default_factory=Pagination)


@dataclass(frozen=True)
class BulkTriageResult:
    """Response of the bulk triage endpoint."""

    items: tuple[Requirement, ...] = ()
    updated: int = 0


@dataclass(frozen=True)
class UserProfile:
    email: str
    preferred_locale: str | None = None


@dataclass(frozen=True)
class OrgSummary:
    id: str
    name: str
    primary_trade: str | None = None


@dataclass(frozen=True)
class AuthProfile:
    """Response of ``GET /auth/me``."""

    user: UserProfile
    org: OrgSummary


@dataclass(frozen=True)
class DocumentRecord:
    """Uploaded document tracked while the service extracts requirements."""

    id: str
    name: str = ""
    status: str = DocumentStatus.PROCESSING.value
    requirement_count: int = 0
    created_at: str | None = None
    extracted_at: str | None = None


# conversion --------------------------------------------------------------


def _date_value(value: Any) -> datetime.date | None:
    return parse_date(value) if value else None


def requirement_from_dict(data: Mapping[str, Any]) -> Requirement:
    """Create :class:`Requirement` from the service's JSON representation.

    Only ``id`` is mandatory. Enumerated fields are kept as the raw strings the
    service sent so that values unknown to this client survive a round trip.
    """
    if "id" not in data or data["id"] in (None, ""):
        raise KeyError("missing required field: id")

    def _text(name: str) -> str:
        value = data.get(name)
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    attributes = data.get("attributes")
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, Mapping):
        raise TypeError("attributes must be an object")

    anchor_value = data.get("anchor_value")
    if anchor_value is not None and not isinstance(anchor_value, Mapping):
        raise TypeError("anchor_value must be an object")

    return Requirement(
        id=str(data["id"]),
        title_en=_text("title_en"),
        title_es=_text("title_es"),
        description_en=_text("description_en"),
        description_es=_text("description_es"),
        status=_text("status") or RawStatus.OPEN.value,
        document_id=_text_or_none(data.get("document_id")),
        document_name=_text_or_none(data.get("document_name")),
        category=_text_or_none(data.get("category")),
        frequency=_text_or_none(data.get("frequency")),
        anchor_type=_text_or_none(data.get("anchor_type")),
        anchor_value=dict(anchor_value) if anchor_value is not None else None,
        due_date=_date_value(data.get("due_date")),
        source_ref=_text_or_none(data.get("source_ref")),
        next_due=_date_value(data.get("next_due")),
        archive_state=_text_or_none(data.get("archive_state")),
        attributes=dict(attributes),
    )


def requirement_to_dict(req: Requirement) -> dict[str, Any]:
    """Convert ``req`` back into the service's JSON shape."""
    return {
        "id": req.id,
        "title_en": req.title_en,
        "title_es": req.title_es,
        "description_en": req.description_en,
        "description_es": req.description_es,
        "status": req.status,
        "document_id": req.document_id,
        "document_name": req.document_name,
        "category": req.category,
        "frequency": req.frequency,
        "anchor_type": req.anchor_type,
        "anchor_value": dict(req.anchor_value) if req.anchor_value is not None else None,
        "due_date": req.due_date.isoformat() if req.due_date else None,
        "source_ref": req.source_ref,
        "next_due": req.next_due.isoformat() if req.next_due else None,
        "archive_state": req.archive_state,
        "attributes": dict(req.attributes),
    }


def page_from_dict(data: Mapping[str, Any]) -> RequirementPage:
    """Parse ``{items, pagination}`` from the list endpoint."""
    items = data.get("items") or []
    if not isinstance(items, list):
        raise TypeError("items must be a list")
    raw_pagination = data.get("pagination") or {}
    rows = tuple(requirement_from_dict(item) for item in items)
    pagination = Pagination(
        page=int(raw_pagination.get("page", 1) or 1),
        limit=int(raw_pagination.get("limit", len(rows)) or len(rows)),
        total=int(raw_pagination.get("total", len(rows)) or 0),
    )
    return RequirementPage(items=rows, pagination=pagination)


def bulk_result_from_dict(data: Mapping[str, Any]) -> BulkTriageResult:
    items = data.get("items") or []
    rows = tuple(requirement_from_dict(item) for item in items)
    return BulkTriageResult(items=rows, updated=int(data.get("updated", len(rows)) or 0))


def profile_from_dict(data: Mapping[str, Any]) -> AuthProfile:
    user = data.get("user") or {}
    org = data.get("org") or {}
    return AuthProfile(
        user=UserProfile(
            email=str(user.get("email", "")),
            preferred_locale=_text_or_none(user.get("preferred_locale")),
        ),
        org=OrgSummary(
            id=str(org.get("id", "")),
            name=str(org.get("name", "")),
            primary_trade=_text_or_none(org.get("primary_trade")),
        ),
    )


def document_from_dict(data: Mapping[str, Any]) -> DocumentRecord:
    if "id" not in data:
        raise KeyError("missing required field: id")
    return DocumentRecord(
        id=str(data["id"]),
        name=str(data.get("name") or ""),
        status=str(data.get("status") or DocumentStatus.PROCESSING.value),
        requirement_count=int(data.get("requirement_count") or 0),
        created_at=_text_or_none(data.get("created_at")),
        extracted_at=_text_or_none(data.get("extracted_at")),
    )
