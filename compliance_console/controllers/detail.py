from __future__ import annotations

from dataclasses import dataclass, field, replace

from ..context import AppContext
from ..core.model import ArchiveState, RawStatus, Requirement
from ..core.triage import (
    TriageForm,
    TriageValidationError,
    build_update_payload,
    changed_fields,
    form_from_requirement,
)
from ..i18n import _
from ..services.requirements import (
    RequirementsService,
    can_archive,
    can_restore,
    normalize_reason,
)
from .requirements import REQUIREMENTS_PATH


@dataclass
class DetailPending:
    saving: bool = False
    archiving: bool = False
    restoring: bool = False


@dataclass
class RequirementDetailController:
    """Edit one requirement.

    ``form`` holds the values being edited and ``baseline`` the values last
    synced from the service. Records awaiting triage are saved through the
    bulk triage endpoint with every triage field compared for changes;
    other records only compare status and due date and are patched.
    """

    context: AppContext
    record: Requirement
    form: TriageForm = field(init=False)
    baseline: TriageForm = field(init=False)
    pending: DetailPending = field(default_factory=DetailPending)

    def __post_init__(self) -> None:
        self._hydrate(self.record)

    @property
    def service(self) -> RequirementsService:
        return self.context.requirements_service

    # ------------------------------------------------------------------
    def _hydrate(self, record: Requirement) -> None:
        self.record = record
        self.baseline = form_from_requirement(record)
        self.form = replace(self.baseline)

    @property
    def triage_mode(self) -> bool:
        return self.baseline.status == RawStatus.PENDING_REVIEW.value

    @property
    def changed(self) -> tuple[str, ...]:
        return changed_fields(self.form, self.baseline, triage_mode=self.triage_mode)

    @property
    def is_dirty(self) -> bool:
        return bool(self.changed)

    @property
    def retention_disabled(self) -> bool:
        return self.record.archive.state == ArchiveState.ARCHIVED.value

    def edit(self, **changes: str) -> None:
        """Update form fields, e.g. ``edit(status="DONE", due_date="2024-05-01")``."""
        self.form = self.form.update(**changes)

    def should_block_unload(self) -> bool:
        return self.is_dirty

    async def refresh(self) -> Requirement:
        latest = await self.service.fetch(self.record.id)
        self._hydrate(latest)
        return latest

    # ------------------------------------------------------------------
    async def save(self) -> bool:
        """Persist the form and return to the list on success."""
        if not self.is_dirty:
            self.context.notifier.info(_("No changes to save."))
            return False
        self.pending.saving = True
        try:
            if self.triage_mode:
                result = await self.service.bulk_triage([self.record.id], self.form)
                if result.items:
                    self._hydrate(result.items[0])
                else:
                    await self.refresh()
            else:
                payload = build_update_payload(self.form, self.baseline)
                self._hydrate(await self.service.update(self.record.id, payload))
        except TriageValidationError as exc:
            self.context.notifier.error(exc.message)
            return False
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to save requirement"))
            return False
        finally:
            self.pending.saving = False
        self.context.notifier.success(_("Requirement updated"))
        self.context.navigator.push(REQUIREMENTS_PATH)
        return True

    async def archive(self) -> bool:
        if not can_archive(self.record):
            return False
        answer = await self.context.dialogs.prompt(
            _("Provide a reason for archiving this requirement."),
            self.record.archive.reason or "",
        )
        if not answer.confirmed or answer.value is None:
            return False
        try:
            reason = normalize_reason(answer.value)
        except ValueError:
            self.context.notifier.error(_("Add a reason to continue."))
            return False
        self.pending.archiving = True
        try:
            self._hydrate(await self.service.archive(self.record.id, reason))
            await self.refresh()
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to update retention state"))
            return False
        finally:
            self.pending.archiving = False
        self.context.notifier.success(_("Requirement archived"))
        self.context.navigator.push(REQUIREMENTS_PATH)
        return True

    async def restore(self) -> bool:
        if not can_restore(self.record):
            return False
        answer = await self.context.dialogs.confirm(_("Restore this requirement to active?"))
        if not answer.confirmed:
            return False
        self.pending.restoring = True
        try:
            self._hydrate(await self.service.restore(self.record.id))
            await self.refresh()
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to update retention state"))
            return False
        finally:
            self.pending.restoring = False
        self.context.notifier.success(_("Requirement restored"))
        self.context.navigator.push(REQUIREMENTS_PATH)
        return True

    def remind(self) -> None:
        if self.retention_disabled:
            return
        self.context.notifier.info(
            _("Reminder scheduled"),
            self.record.title_for(self.context.locale.locale),
        )

    async def request_back(self) -> bool:
        """Navigate back, asking first when there are unsaved edits."""
        if self.is_dirty:
            answer = await self.context.dialogs.confirm(
                _("You have unsaved changes. Leave without saving?")
            )
            if not answer.confirmed:
                self.context.notifier.info(_("Keep editing to save your updates."))
                return False
            self.context.notifier.warning(_("Unsaved changes were discarded."))
        self.context.navigator.back()
        return True


__all__ = ["DetailPending", "RequirementDetailController"]
