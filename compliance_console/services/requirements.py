"""Network half of the requirement mutation workflows."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..api.client import ApiClient, QueryParams
from ..core.model import (
    ArchiveState,
    BulkTriageResult,
    RawStatus,
    Requirement,
    RequirementPage,
)
from ..core.triage import TriageForm, build_triage_payload
from ..telemetry import action_scope, log_event


class EmptyReasonError(ValueError):
    """Raised when an archive reason is blank after trimming."""


def normalize_reason(raw: str | None) -> str:
    """Return ``raw`` trimmed or raise :class:`EmptyReasonError`."""
    reason = (raw or "").strip()
    if not reason:
        raise EmptyReasonError("archive reason is required")
    return reason


def can_complete(record: Requirement) -> bool:
    """Return ``False`` for records already done or still awaiting triage."""
    return record.status not in (RawStatus.DONE.value, RawStatus.PENDING_REVIEW.value)


def can_archive(record: Requirement) -> bool:
    return not record.is_archived


def can_restore(record: Requirement) -> bool:
    return record.archive.state == ArchiveState.ARCHIVED.value


@dataclass
class RequirementsService:
    """UI-free gateway for reading and mutating requirements."""

    client: ApiClient

    # reads -----------------------------------------------------------------
    async def fetch_page(self, params: QueryParams | None = None) -> RequirementPage:
        return await self.client.list_requirements(params)

    async def fetch(self, requirement_id: str) -> Requirement:
        return await self.client.get_requirement(requirement_id)

    # mutations -------------------------------------------------------------
    async def _mutation(
        self,
        action: str,
        payload: Mapping[str, Any],
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run ``call()`` inside an action scope so its API events share an id."""
        with action_scope(action):
            start = time.monotonic()
            log_event("MUTATION_START", payload)
            try:
                result = await call()
            except Exception as exc:
                log_event(
                    "MUTATION_FAILED",
                    {**payload, "error": str(exc)},
                    start_time=start,
                    level=logging.WARNING,
                )
                raise
            log_event("MUTATION_DONE", payload, start_time=start)
        return result

    async def complete(self, requirement_id: str, completed_by: str | None) -> Requirement:
        return await self._mutation(
            "complete",
            {"id": requirement_id},
            lambda: self.client.complete_requirement(requirement_id, completed_by),
        )

    async def archive(self, requirement_id: str, reason: str) -> Requirement:
        """Archive ``requirement_id`` with the trimmed, non-empty ``reason``."""
        clean = normalize_reason(reason)
        return await self._mutation(
            "archive",
            {"id": requirement_id},
            lambda: self.client.archive_requirement(requirement_id, clean),
        )

    async def restore(self, requirement_id: str) -> Requirement:
        return await self._mutation(
            "restore",
            {"id": requirement_id},
            lambda: self.client.restore_requirement(requirement_id),
        )

    async def dismiss_many(
        self, requirement_ids: Sequence[str], reason: str
    ) -> list[Requirement]:
        """Archive every id with one shared ``reason``.

        The per-record calls run concurrently and the batch fails as a whole
        if any call fails, even though others may already have been applied
        by the service.
        """
        clean = normalize_reason(reason)
        ids = list(requirement_ids)
        return await self._mutation(
            "dismiss",
            {"ids": ids},
            lambda: asyncio.gather(
                *(self.client.archive_requirement(rid, clean) for rid in ids)
            ),
        )

    async def bulk_triage(
        self, requirement_ids: Sequence[str], form: TriageForm
    ) -> BulkTriageResult:
        """Validate ``form`` and apply it to all ids in one request."""
        payload = build_triage_payload(requirement_ids, form)
        return await self._mutation(
            "triage",
            {"ids": payload["requirement_ids"]},
            lambda: self.client.bulk_triage(payload),
        )

    async def update(self, requirement_id: str, payload: Mapping[str, Any]) -> Requirement:
        return await self._mutation(
            "update",
            {"id": requirement_id, "fields": sorted(payload)},
            lambda: self.client.update_requirement(requirement_id, payload),
        )


__all__ = [
    "RequirementsService",
    "EmptyReasonError",
    "normalize_reason",
    "can_complete",
    "can_archive",
    "can_restore",
]
