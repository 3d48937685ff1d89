"""Bulk triage selection over the loaded rows."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..core.filters import StatusFilter
from ..core.model import RawStatus, Requirement


def is_selectable(row: Requirement) -> bool:
    """Return ``True`` for rows eligible for bulk triage."""
    return row.status == RawStatus.PENDING_REVIEW.value


def selectable_ids(rows: Iterable[Requirement]) -> list[str]:
    return [row.id for row in rows if is_selectable(row)]


@dataclass(frozen=True)
class SelectAllState:
    """State of the header checkbox for the loaded page."""

    has_selectable: bool
    all_selected: bool
    some_selected: bool

    @property
    def indeterminate(self) -> bool:
        return self.some_selected and not self.all_selected


@dataclass
class SelectionManager:
    """Set of selected requirement ids.

    Every id must belong to a loaded ``PENDING_REVIEW`` row; :meth:`prune`
    restores that after the rows change.
    """

    _ids: set[str] = field(default_factory=set)

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._ids

    def is_selected(self, row_id: str) -> bool:
        return row_id in self._ids

    # ------------------------------------------------------------------
    def toggle(self, row: Requirement, checked: bool) -> bool:
        """Add or remove ``row``; returns ``False`` when the row is not selectable."""
        if not is_selectable(row):
            return False
        if checked:
            self._ids.add(row.id)
        else:
            self._ids.discard(row.id)
        return True

    def toggle_all(self, rows: Iterable[Requirement], checked: bool) -> None:
        """Select or deselect the selectable ids of ``rows`` only."""
        page_ids = selectable_ids(rows)
        if checked:
            self._ids.update(page_ids)
        else:
            self._ids.difference_update(page_ids)

    def select_all_state(self, rows: Iterable[Requirement]) -> SelectAllState:
        page_ids = selectable_ids(rows)
        selected = [row_id for row_id in page_ids if row_id in self._ids]
        return SelectAllState(
            has_selectable=bool(page_ids),
            all_selected=bool(page_ids) and len(selected) == len(page_ids),
            some_selected=bool(selected),
        )

    def prune(self, rows: Iterable[Requirement]) -> set[str]:
        """Keep only ids of ``rows`` that are still selectable.

        Returns the ids that were dropped.
        """
        keep = set(selectable_ids(rows))
        dropped = self._ids - keep
        self._ids &= keep
        return dropped

    def discard(self, ids: Iterable[str]) -> None:
        self._ids.difference_update(ids)

    def clear(self) -> None:
        self._ids.clear()

    def selected_rows(self, rows: Iterable[Requirement]) -> list[Requirement]:
        """Return rows of ``rows`` that are selected, in row order."""
        return [row for row in rows if row.id in self._ids]

    @staticmethod
    def should_show(
        rows: Iterable[Requirement], status_filters: Sequence[StatusFilter | str]
    ) -> bool:
        """Return ``True`` while the triage filter or a selectable row is present."""
        if StatusFilter.TRIAGE in {StatusFilter(value) for value in status_filters}:
            return True
        return any(is_selectable(row) for row in rows)


__all__ = ["SelectAllState", "SelectionManager", "is_selectable", "selectable_ids"]
