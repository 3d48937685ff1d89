"""Presentation status and labels derived from raw requirement fields."""

from __future__ import annotations

import datetime
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

from ..i18n import _
from ..util.time import days_until
from .model import ArchiveState, Frequency, RawStatus, Requirement


class UiStatus(str, Enum):
    """Status shown to the user, independent from the raw service value."""

    OPEN = "OPEN"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    NEEDS_TRIAGE = "NEEDS_TRIAGE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"
    OVERDUE = "OVERDUE"


class BadgeVariant(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"
    MUTED = "muted"


@dataclass(frozen=True)
class Badge:
    """Label with an optional visual variant; ``None`` renders as plain text."""

    label: str
    variant: BadgeVariant | None = None


_HIDDEN_ARCHIVE_STATES = frozenset({ArchiveState.ARCHIVED.value, ArchiveState.DELETED.value})


def derive_status(record: Requirement, today: datetime.date | None = None) -> UiStatus:
    """Return the :class:`UiStatus` of ``record``.

    Rules are evaluated in order and the first match wins:

    1. archive state ``archived``/``deleted`` or raw ``ARCHIVED``;
    2. ``PENDING_REVIEW`` gives ``NEEDS_TRIAGE``;
    3. ``DONE`` or ``READY`` gives ``COMPLETED``;
    4. ``REVIEW`` gives ``NEEDS_REVIEW``;
    5. anything else gives ``OPEN``.

    Rules 2-5 yield ``OVERDUE`` instead when the due date lies before
    ``today`` (UTC calendar days).
    """
    if record.archive.state in _HIDDEN_ARCHIVE_STATES:
        return UiStatus.ARCHIVED
    if record.status == RawStatus.ARCHIVED.value:
        return UiStatus.ARCHIVED

    remaining = days_until(record.due_date, today)
    overdue = remaining is not None and remaining < 0

    status = record.status or RawStatus.OPEN.value
    if status == RawStatus.PENDING_REVIEW.value:
        base = UiStatus.NEEDS_TRIAGE
    elif status in (RawStatus.DONE.value, RawStatus.READY.value):
        base = UiStatus.COMPLETED
    elif status == RawStatus.REVIEW.value:
        base = UiStatus.NEEDS_REVIEW
    else:
        base = UiStatus.OPEN
    return UiStatus.OVERDUE if overdue else base


def ui_status_badge(status: UiStatus) -> Badge:
    """Return label and variant used for ``status``."""
    if status is UiStatus.OPEN:
        return Badge(_("Open"), BadgeVariant.WARNING)
    if status is UiStatus.NEEDS_REVIEW:
        return Badge(_("Needs review"), BadgeVariant.MUTED)
    if status is UiStatus.NEEDS_TRIAGE:
        return Badge(_("Needs triage"), BadgeVariant.WARNING)
    if status is UiStatus.COMPLETED:
        return Badge(_("Completed"), BadgeVariant.SUCCESS)
    if status is UiStatus.ARCHIVED:
        return Badge(_("Archived"), BadgeVariant.MUTED)
    return Badge(_("Overdue"), BadgeVariant.DANGER)


def status_badge(record: Requirement, today: datetime.date | None = None) -> Badge:
    """Return the badge for the status column.

    The root ``archive_state`` takes over the column while a retention request
    is pending or settled.
    """
    state = record.archive_state
    if state == ArchiveState.PENDING.value:
        return Badge(_("Pending approval"), BadgeVariant.WARNING)
    if state == ArchiveState.ARCHIVED.value:
        return Badge(_("Archived"), BadgeVariant.MUTED)
    if state == ArchiveState.DELETED.value:
        return Badge(_("Deleted"), BadgeVariant.DANGER)
    return ui_status_badge(derive_status(record, today))


def alert_for(record: Requirement, today: datetime.date | None = None) -> Badge:
    """Return the alert cell for ``record``: done, overdue, due today or soon."""
    if record.status == RawStatus.DONE.value:
        return Badge(_("Done"))
    remaining = days_until(record.due_date, today)
    if remaining is None:
        return Badge("—")
    if remaining < 0:
        return Badge(_("Overdue"), BadgeVariant.DANGER)
    if remaining == 0:
        return Badge(_("Due today"), BadgeVariant.WARNING)
    if remaining <= 7:
        return Badge(_("Expiring soon"), BadgeVariant.WARNING)
    return Badge("—")


def raw_status_label(value: str | None) -> str:
    """Return the label of a raw status as offered in edit forms."""
    labels = {
        RawStatus.OPEN.value: _("Open"),
        RawStatus.REVIEW.value: _("Needs review"),
        RawStatus.PENDING_REVIEW.value: _("Needs triage"),
        RawStatus.READY.value: _("Scheduled"),
        RawStatus.DONE.value: _("Completed"),
        RawStatus.ARCHIVED.value: _("Archived"),
    }
    if not value:
        return "—"
    return labels.get(value, humanize_token(value))


def humanize_token(value: str) -> str:
    """Turn ``SOME_token-name`` into ``Some Token Name``."""
    parts = [segment for segment in re.split(r"[_-]", value) if segment]
    return " ".join(segment[:1].upper() + segment[1:].lower() for segment in parts)


def _strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")


def format_frequency_label(value: str | None) -> str:
    """Return the display label for a frequency value."""
    if not value:
        return "—"
    labels = {
        Frequency.BEFORE_EACH_USE.value: _("Before each use"),
        Frequency.DAILY.value: _("Daily"),
        Frequency.WEEKLY.value: _("Weekly"),
        Frequency.MONTHLY.value: _("Monthly"),
        Frequency.QUARTERLY.value: _("Quarterly"),
        Frequency.ANNUAL.value: _("Annual"),
        Frequency.EVERY_N_DAYS.value: _("Every N days"),
        Frequency.EVERY_N_WEEKS.value: _("Every N weeks"),
        Frequency.EVERY_N_MONTHS.value: _("Every N months"),
        Frequency.ONE_TIME.value: _("One time"),
    }
    if value in labels:
        return labels[value]
    formatted = value.replace("_", " ").lower()
    return formatted[:1].upper() + formatted[1:]


def format_category_label(value: str | None) -> str:
    """Return the translated category, defaulting to the value itself."""
    if not value:
        return "—"
    return _(value)


def format_triage_reason(reason: str) -> str:
    """Return a readable label for a triage reason token such as ``missing_due_date``."""
    normalized = re.sub(r"[^a-zA-Z0-9]+", "_", _strip_accents(reason)).strip("_")
    label = humanize_token(normalized)
    return _(label) if label else reason


__all__ = [
    "UiStatus",
    "BadgeVariant",
    "Badge",
    "derive_status",
    "ui_status_badge",
    "status_badge",
    "alert_for",
    "raw_status_label",
    "humanize_token",
    "format_frequency_label",
    "format_category_label",
    "format_triage_reason",
]
