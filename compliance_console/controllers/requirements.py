from __future__ import annotations

import datetime
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace

from ..context import AppContext
from ..core.filters import (
    DueFilter,
    FilterState,
    StatusFilter,
    build_query_params,
    clamp_page,
    decode,
    encode,
    page_count,
)
from ..core.model import Pagination, Requirement, RequirementPage
from ..core.status import UiStatus, derive_status
from ..core.triage import TriageForm, TriageValidationError
from ..i18n import _
from ..navigation import Location
from ..services.requirements import (
    RequirementsService,
    can_archive,
    can_complete,
    normalize_reason,
)
from ..sync.cache import CacheKey, RemoteCache
from ..sync.mirror import RowMirror
from ..telemetry import log_event
from .selection import SelectAllState, SelectionManager, is_selectable

REQUIREMENTS_PATH = "/requirements"


@dataclass(frozen=True)
class PendingFlags:
    """Markers for mutations in flight, used to disable their triggers."""

    completing_id: str | None = None
    archiving_ids: frozenset[str] = frozenset()
    dismissing: bool = False
    submitting_triage: bool = False


@dataclass(frozen=True)
class PaginationView:
    page: int
    page_size: int
    total: int
    page_count: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


@dataclass(frozen=True)
class RequirementRow:
    record: Requirement
    derived_status: UiStatus
    selectable: bool
    selected: bool


@dataclass(frozen=True)
class SelectionView:
    ids: frozenset[str]
    select_all: SelectAllState

    @property
    def count(self) -> int:
        return len(self.ids)


@dataclass(frozen=True)
class RequirementListView:
    """Everything a renderer needs to draw the requirements table."""

    rows: tuple[RequirementRow, ...]
    pagination: PaginationView
    selection: SelectionView
    pending: PendingFlags
    filters: FilterState
    show_selection: bool
    is_loading: bool


class RequirementListController:
    """Drive the requirements table from the current navigation state.

    The controller owns the row mirror and the selection; both are written
    only from here. The remote cache is keyed by the query parameters
    decoded from the navigator, so changing filters or page switches the
    key and the cache fetches the new view.
    """

    def __init__(
        self,
        context: AppContext,
        *,
        seed: RequirementPage | None = None,
        today: Callable[[], datetime.date] | None = None,
    ) -> None:
        self.context = context
        self.service: RequirementsService = context.requirements_service
        self.page_size = context.settings.requirements.page_size
        self._today = today
        self.mirror: RowMirror[Requirement] = RowMirror(seed.items if seed else ())
        self.selection = SelectionManager()
        self.filters = decode(self.location.query)
        self._pagination: Pagination | None = seed.pagination if seed else None
        self._pending = PendingFlags()
        self.cache: RemoteCache[RequirementPage] = RemoteCache(
            self._fetch,
            self._cache_key(self.filters),
            seed=seed,
            refresh_interval=context.settings.requirements.refresh_interval_seconds,
            name="requirements",
        )
        self.cache.subscribe(self._on_data, self._on_error)
        self.mirror.subscribe(self._on_rows_changed)

    # ------------------------------------------------------------------
    @property
    def location(self) -> Location:
        return self.context.navigator.location

    @property
    def pending(self) -> PendingFlags:
        return self._pending

    def _set_pending(self, **changes: object) -> None:
        self._pending = replace(self._pending, **changes)

    def _cache_key(self, state: FilterState) -> CacheKey:
        return CacheKey.of(REQUIREMENTS_PATH, build_query_params(state, self.page_size))

    async def _fetch(self, key: CacheKey) -> RequirementPage:
        return await self.service.fetch_page(key.as_params())

    # cache and mirror listeners ----------------------------------------
    def _on_data(self, page: RequirementPage) -> None:
        self._pagination = page.pagination
        self.mirror.replace(page.items)

    def _on_error(self, exc: Exception) -> None:
        self.context.report_failure(exc, _("Unable to load requirements"))

    def _on_rows_changed(self, rows: tuple[Requirement, ...]) -> None:
        self.selection.prune(rows)
        if not SelectionManager.should_show(rows, self.filters.status_filters):
            self.selection.clear()

    # lifecycle ---------------------------------------------------------
    def start(self) -> None:
        """Begin fetching and periodic refresh on the running event loop."""
        self.cache.start()

    async def load(self) -> RequirementPage | None:
        return await self.cache.revalidate()

    async def revalidate(self) -> RequirementPage | None:
        return await self.cache.revalidate()

    async def sync_location(self) -> RequirementPage | None:
        """Re-read filters from the navigator and switch the cache key."""
        self.filters = decode(self.location.query)
        return await self.cache.set_key(self._cache_key(self.filters))

    async def close(self) -> None:
        await self.cache.close()

    # filters and paging ------------------------------------------------
    async def set_filter_state(
        self,
        *,
        due_filters: Iterable[DueFilter | str] | None = None,
        status_filters: Iterable[StatusFilter | str] | None = None,
        page: int | None = None,
    ) -> RequirementPage | None:
        """Commit a new query; rows and selection are cleared first."""
        query = encode(
            self.location.query,
            due_filters=due_filters,
            status_filters=status_filters,
            page=page,
        )
        self.mirror.clear()
        self.selection.clear()
        self._pagination = None
        href = Location(self.location.path, query).href
        log_event("FILTERS_CHANGED", {"href": href})
        self.context.navigator.replace(href)
        self.filters = decode(self.location.query)
        key = self._cache_key(self.filters)
        if key == self.cache.key:
            # the rows were just cleared, so the same query is fetched again
            return await self.cache.revalidate()
        return await self.cache.set_key(key)

    async def apply_filters(
        self,
        due_filters: Iterable[DueFilter | str],
        status_filters: Iterable[StatusFilter | str],
    ) -> RequirementPage | None:
        return await self.set_filter_state(
            due_filters=due_filters, status_filters=status_filters, page=1
        )

    async def clear_filters(self) -> RequirementPage | None:
        return await self.set_filter_state(due_filters=(), status_filters=(), page=1)

    async def go_to_page(self, page: int) -> RequirementPage | None:
        return await self.set_filter_state(page=page)

    # view model --------------------------------------------------------
    def pagination_view(self) -> PaginationView:
        rows = self.mirror.rows
        total = self._pagination.total if self._pagination else len(rows)
        requested = self._pagination.page if self._pagination else self.filters.page
        return PaginationView(
            page=clamp_page(requested, total, self.page_size),
            page_size=self.page_size,
            total=total,
            page_count=page_count(total, self.page_size),
        )

    def today(self) -> datetime.date | None:
        return self._today() if self._today else None

    def view_model(self) -> RequirementListView:
        rows = self.mirror.rows
        today = self.today()
        return RequirementListView(
            rows=tuple(
                RequirementRow(
                    record=row,
                    derived_status=derive_status(row, today),
                    selectable=is_selectable(row),
                    selected=row.id in self.selection,
                )
                for row in rows
            ),
            pagination=self.pagination_view(),
            selection=SelectionView(
                ids=self.selection.ids,
                select_all=self.selection.select_all_state(rows),
            ),
            pending=self._pending,
            filters=self.filters,
            show_selection=SelectionManager.should_show(rows, self.filters.status_filters),
            is_loading=self.cache.is_loading,
        )

    # selection ---------------------------------------------------------
    def toggle_selection(self, row: Requirement, checked: bool) -> bool:
        return self.selection.toggle(row, checked)

    def toggle_select_all(self, checked: bool) -> None:
        self.selection.toggle_all(self.mirror.rows, checked)

    def selected_rows(self) -> list[Requirement]:
        return self.selection.selected_rows(self.mirror.rows)

    # workflows ---------------------------------------------------------
    async def complete(self, record: Requirement) -> Requirement | None:
        """Mark ``record`` complete; records done or awaiting triage are ignored."""
        if not can_complete(record):
            return None
        self._set_pending(completing_id=record.id)
        try:
            updated = await self.service.complete(record.id, self.context.actor_email)
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to complete requirement"))
            return None
        finally:
            self._set_pending(completing_id=None)
        self.context.notifier.success(_("Requirement marked complete"))
        self.mirror.upsert(updated)
        await self.revalidate()
        return updated

    async def archive(self, record: Requirement) -> Requirement | None:
        """Ask for a reason and archive ``record``."""
        if not can_archive(record):
            return None
        answer = await self.context.dialogs.prompt(
            _("Provide a reason for archiving this requirement."), ""
        )
        if not answer.confirmed or answer.value is None:
            return None
        try:
            reason = normalize_reason(answer.value)
        except ValueError:
            self.context.notifier.error(_("Add a reason to continue."))
            return None

        self._set_pending(archiving_ids=self._pending.archiving_ids | {record.id})
        try:
            updated = await self.service.archive(record.id, reason)
            self.mirror.upsert(updated)
            self.selection.discard([record.id])
            # archive metadata (requested by/at) is computed server side
            latest = await self.service.fetch(record.id)
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to update retention state"))
            return None
        finally:
            self._set_pending(archiving_ids=self._pending.archiving_ids - {record.id})
        self.mirror.upsert(latest)
        self.context.notifier.success(_("Requirement archived"))
        await self.revalidate()
        return latest

    async def dismiss(
        self,
        records: Sequence[Requirement],
        *,
        confirm: bool = True,
        reason: str | None = None,
    ) -> bool:
        """Archive ``records`` as not applicable with one shared reason.

        Returns ``True`` when every archive call succeeded. After a failure
        the view is revalidated since some records may have been archived.
        """
        if not records:
            return False
        archive_reason = reason if reason is not None else _("Not applicable")
        count = len(records)
        if confirm:
            if count == 1:
                message = _("Archive this requirement as not applicable?")
            else:
                message = _("Archive %(count)d requirements as not applicable?") % {
                    "count": count
                }
            answer = await self.context.dialogs.confirm(message)
            if not answer.confirmed:
                return False
            typed = await self.context.dialogs.prompt(
                _("Add a note for why these requirements are being archived."),
                archive_reason,
            )
            if not typed.confirmed or typed.value is None:
                return False
            archive_reason = typed.value.strip()
        if not archive_reason.strip():
            self.context.notifier.error(_("Add a reason to continue."))
            return False

        ids = [record.id for record in records]
        self._set_pending(dismissing=True)
        try:
            await self.service.dismiss_many(ids, archive_reason)
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to update requirements"))
            await self.revalidate()
            return False
        finally:
            self._set_pending(dismissing=False)
        if count == 1:
            self.context.notifier.success(_("Requirement archived"))
        else:
            self.context.notifier.success(
                _("Archived %(count)d requirements") % {"count": count}
            )
        self.selection.discard(ids)
        await self.revalidate()
        return True

    async def dismiss_selected(self, *, confirm: bool = True) -> bool:
        return await self.dismiss(self.selected_rows(), confirm=confirm)

    async def submit_triage(
        self, form: TriageForm, ids: Sequence[str] | None = None
    ) -> bool:
        """Apply ``form`` to the selected rows (or ``ids``) in one request."""
        if ids is not None:
            target = list(ids)
        else:
            target = [row.id for row in self.selected_rows()]
        if not target:
            return False
        self._set_pending(submitting_triage=True)
        try:
            # validation errors are raised before any request is sent
            result = await self.service.bulk_triage(target, form)
        except TriageValidationError as exc:
            self.context.notifier.error(exc.message)
            return False
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to update triage"))
            return False
        finally:
            self._set_pending(submitting_triage=False)
        for item in result.items:
            if item.id in self.mirror:
                self.mirror.upsert(item)
        self.context.notifier.success(_("Triage updated"))
        self.selection.clear()
        await self.revalidate()
        return True

    def remind(self, record: Requirement) -> None:
        self.context.notifier.info(
            _("Reminder scheduled"),
            record.title_for(self.context.locale.locale),
        )

    def open_detail(self, record: Requirement) -> None:
        self.context.navigator.push(f"{REQUIREMENTS_PATH}/{record.id}")



__all__ = [
    "PendingFlags",
    "PaginationView",
    "RequirementRow",
    "SelectionView",
    "RequirementListView",
    "RequirementListController",
    "REQUIREMENTS_PATH",
]
