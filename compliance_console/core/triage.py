"""Triage form state, validation and payload construction."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from ..i18n import _
from ..util.time import date_input_value, iso_at_utc, parse_date
from .model import INTERVAL_KEYS, Frequency, RawStatus, Requirement

TRIAGE_FIELDS = (
    "frequency",
    "anchor_type",
    "anchor_date",
    "interval",
    "assignee",
    "status",
    "due_date",
)
STANDARD_FIELDS = ("status", "due_date")


class TriageValidationError(ValueError):
    """Raised when a triage form is missing a required value."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


@dataclass
class TriageForm:
    """Editable triage values as entered by the user.

    Every field holds the raw text of its input; dates use ``YYYY-MM-DD``.
    """

    status: str = RawStatus.OPEN.value
    frequency: str = ""
    anchor_type: str = ""
    anchor_date: str = ""
    due_date: str = ""
    interval: str = ""
    assignee: str = ""

    def update(self, **changes: str) -> TriageForm:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)


@dataclass(frozen=True)
class ValidTriage:
    """Parsed values of a triage form that passed validation."""

    status: str
    frequency: Frequency
    interval: int | None


def _parse_interval(raw: str) -> int | None:
    text = raw.strip()
    if not text:
        return None
    try:
        value = int(text)
    except ValueError:
        return None
    return value if value > 0 else None


def validate_triage_form(form: TriageForm) -> ValidTriage:
    """Validate ``form`` or raise :class:`TriageValidationError`.

    Checks run in order: status, frequency, due date (not needed for
    ``BEFORE_EACH_USE`` and ``ONE_TIME``), then a positive integer interval
    for the ``EVERY_N_*`` frequencies.
    """
    if not form.status:
        raise TriageValidationError("status", _("Choose a status before saving."))
    try:
        frequency = Frequency(form.frequency)
    except ValueError:
        raise TriageValidationError(
            "frequency", _("Select a frequency before resolving.")
        ) from None
    if frequency.requires_due_date and parse_date(form.due_date or None) is None:
        raise TriageValidationError("due_date", _("Set a due date before resolving."))
    interval = None
    if frequency.is_interval:
        interval = _parse_interval(form.interval)
        if interval is None:
            raise TriageValidationError("interval", _("Provide an interval value"))
    return ValidTriage(status=form.status, frequency=frequency, interval=interval)


def build_anchor_value(
    form: TriageForm, frequency: Frequency, interval: int | None
) -> dict[str, Any] | None:
    """Return the ``anchor_value`` object for ``form`` or ``None`` when empty."""
    anchor_day = parse_date(form.anchor_date or None)
    if not (form.anchor_type or anchor_day or interval):
        return None
    value: dict[str, Any] = {}
    if anchor_day is not None:
        value["date"] = iso_at_utc(anchor_day)
    if interval is not None and frequency in INTERVAL_KEYS:
        value["interval"] = interval
        value[INTERVAL_KEYS[frequency]] = interval
    return value


def build_triage_payload(ids: Iterable[str], form: TriageForm) -> dict[str, Any]:
    """Validate ``form`` and return the bulk triage request body for ``ids``."""
    valid = validate_triage_form(form)
    payload: dict[str, Any] = {
        "requirement_ids": list(ids),
        "frequency": valid.frequency.value,
        "status": valid.status,
    }
    if form.anchor_type:
        payload["anchor_type"] = form.anchor_type
    anchor_value = build_anchor_value(form, valid.frequency, valid.interval)
    if anchor_value is not None:
        payload["anchor_value"] = anchor_value
    due_day = parse_date(form.due_date or None)
    if due_day is not None:
        payload["due_date"] = iso_at_utc(due_day, hour=12)
    assignee = form.assignee.strip()
    if assignee:
        payload["assignee"] = assignee
    return payload


def _interval_text(anchor_value: Mapping[str, Any]) -> str:
    for key in ("interval", "days", "weeks", "months"):
        raw = anchor_value.get(key)
        if raw is None:
            continue
        if isinstance(raw, bool):
            return ""
        if isinstance(raw, (int, float)):
            return str(int(raw)) if float(raw).is_integer() else str(raw)
        if isinstance(raw, str):
            return raw
        return ""
    return ""


def form_from_requirement(record: Requirement) -> TriageForm:
    """Return the form baseline for ``record`` as last synced."""
    anchor_value = record.anchor_value or {}
    raw_date = anchor_value.get("date")
    return TriageForm(
        status=record.status or RawStatus.OPEN.value,
        frequency=record.frequency or "",
        anchor_type=record.anchor_type or "",
        anchor_date=date_input_value(raw_date) if isinstance(raw_date, str) else "",
        due_date=date_input_value(record.due_date),
        interval=_interval_text(anchor_value),
        assignee=record.assignee,
    )


def changed_fields(
    form: TriageForm, baseline: TriageForm, *, triage_mode: bool
) -> tuple[str, ...]:
    """Return names of fields in ``form`` that differ from ``baseline``.

    In triage mode every triage field is compared; otherwise only status and
    due date are.
    """
    names = TRIAGE_FIELDS if triage_mode else STANDARD_FIELDS
    return tuple(name for name in names if getattr(form, name) != getattr(baseline, name))


def build_update_payload(form: TriageForm, baseline: TriageForm) -> dict[str, Any]:
    """Return the ``PATCH /requirements/{id}`` body for a standard edit."""
    payload: dict[str, Any] = {}
    if form.status != baseline.status:
        payload["status"] = form.status
    if form.due_date != baseline.due_date:
        due_day = parse_date(form.due_date or None)
        payload["due_date"] = iso_at_utc(due_day, hour=12) if due_day else None
    return payload


__all__ = [
    "TRIAGE_FIELDS",
    "STANDARD_FIELDS",
    "TriageValidationError",
    "TriageForm",
    "ValidTriage",
    "validate_triage_form",
    "build_anchor_value",
    "build_triage_payload",
    "form_from_requirement",
    "changed_fields",
    "build_update_payload",
]
