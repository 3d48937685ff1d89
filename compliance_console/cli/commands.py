"""Command implementations for the CLI interface."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TextIO

from compliance_console.api.errors import ApiError
from compliance_console.context import AppContext
from compliance_console.controllers import (
    ProfileController,
    RequirementDetailController,
    RequirementListController,
    RequirementListView,
)
from compliance_console.core.filters import DueFilter, StatusFilter, encode
from compliance_console.core.model import (
    AnchorType,
    DocumentRecord,
    Frequency,
    RawStatus,
    Requirement,
    requirement_to_dict,
)
from compliance_console.core.status import (
    alert_for,
    format_category_label,
    format_frequency_label,
    status_badge,
)
from compliance_console.core.triage import TriageForm
from compliance_console.dialogs import ScriptedDialogs
from compliance_console.i18n import _
from compliance_console.sync.polling import DocumentPoller
from compliance_console.util.time import format_date

FREQUENCY_CHOICES = [e.value for e in Frequency]
ANCHOR_CHOICES = [e.value for e in AnchorType]
STATUS_CHOICES = [e.value for e in RawStatus]
DUE_CHOICES = [e.value for e in DueFilter]
FILTER_CHOICES = [e.value for e in StatusFilter]

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UNAUTHENTICATED = 2


@dataclass
class Command:
    """Describe a CLI command and its argument handler."""

    func: Callable[[argparse.Namespace], int]
    help: str
    add_arguments: Callable[[argparse.ArgumentParser], None]


Workflow = Callable[[AppContext, argparse.Namespace], Awaitable[int]]


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def build_context(args: argparse.Namespace, initial_path: str = "/requirements") -> AppContext:
    """Return context for one CLI invocation."""
    interactive = not getattr(args, "yes", False)
    return AppContext.for_cli(
        args.app_settings, interactive=interactive, initial_path=initial_path
    )


def run_workflow(
    args: argparse.Namespace, workflow: Workflow, *, initial_path: str = "/requirements"
) -> int:
    """Load the profile, then run ``workflow`` on a fresh event loop."""

    async def _main() -> int:
        context = build_context(args, initial_path)
        try:
            profile = await ProfileController(context).load()
            if profile is None:
                if context.navigator.location.path == context.settings.ui.login_path:
                    sys.stdout.write(_("Not signed in.") + "\n")
                    return EXIT_UNAUTHENTICATED
                return EXIT_FAILED
            if getattr(args, "language", None):
                # an explicit --language beats the stored preference
                context.locale.set_locale(args.language)
            return await workflow(context, args)
        finally:
            await context.aclose()

    return asyncio.run(_main())


async def _fetch(context: AppContext, requirement_id: str) -> Requirement | None:
    try:
        return await context.requirements_service.fetch(requirement_id)
    except ApiError as exc:
        context.report_failure(exc, _("Requirement not found"))
        return None


def _format_row(context: AppContext, record: Requirement) -> str:
    locale = context.locale.locale
    badge = status_badge(record)
    due = format_date(record.due_date, locale) if record.due_date else "—"
    return "\t".join(
        [record.id, badge.label, due, alert_for(record).label, record.title_for(locale)]
    )


def _write_view(context: AppContext, view: RequirementListView, out: TextIO) -> None:
    for row in view.rows:
        marker = "*" if row.selectable else " "
        out.write(f"{marker} {_format_row(context, row.record)}\n")
    page = view.pagination
    out.write(
        _("Page {page} of {count} ({total} requirements)").format(
            page=page.page, count=page.page_count, total=page.total
        )
        + "\n"
    )


# ---------------------------------------------------------------------------
async def _list(context: AppContext, args: argparse.Namespace) -> int:
    controller = RequirementListController(context)
    try:
        await controller.load()
        view = controller.view_model()
    finally:
        await controller.close()
    out = sys.stdout
    if args.json:
        payload = {
            "items": [requirement_to_dict(row.record) for row in view.rows],
            "pagination": {
                "page": view.pagination.page,
                "limit": view.pagination.page_size,
                "total": view.pagination.total,
            },
        }
        out.write(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n")
    else:
        _write_view(context, view, out)
    return EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    """List requirements matching the filters."""
    try:
        query = encode(
            "",
            due_filters=_split_csv(args.due),
            status_filters=_split_csv(args.status),
            page=args.page,
        )
    except ValueError as exc:
        sys.stderr.write(_("invalid filter: {error}").format(error=exc) + "\n")
        return EXIT_FAILED
    path = f"/requirements?{query}" if query else "/requirements"
    return run_workflow(args, _list, initial_path=path)


def add_list_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``list`` command."""
    p.add_argument(
        "--due",
        help=_("comma separated due windows: {choices}").format(choices=", ".join(DUE_CHOICES)),
    )
    p.add_argument(
        "--status",
        help=_("comma separated status filters: {choices}").format(
            choices=", ".join(FILTER_CHOICES)
        ),
    )
    p.add_argument("--page", type=int, default=1, help=_("page number"))
    p.add_argument("--json", action="store_true", help=_("print JSON"))


async def _show(context: AppContext, args: argparse.Namespace) -> int:
    record = await _fetch(context, args.id)
    if record is None:
        return EXIT_FAILED
    out = sys.stdout
    if args.json:
        out.write(
            json.dumps(requirement_to_dict(record), ensure_ascii=False, indent=2, sort_keys=True)
            + "\n"
        )
        return EXIT_OK
    locale = context.locale.locale
    lines = [
        (_("Title"), record.title_for(locale)),
        (_("Description"), record.description_for(locale)),
        (_("Status"), status_badge(record).label),
        (_("Alerts"), alert_for(record).label),
        (_("Due date"), format_date(record.due_date, locale) if record.due_date else "—"),
        (_("Frequency"), format_frequency_label(record.frequency)),
        (_("Category"), format_category_label(record.category)),
        (_("Assignee"), record.assignee or "—"),
    ]
    archive = record.archive
    if archive.reason:
        lines.append((_("Archive reason"), archive.reason))
    out.write(f"{record.id}\n")
    for label, value in lines:
        out.write(f"  {label}: {value}\n")
    return EXIT_OK


def cmd_show(args: argparse.Namespace) -> int:
    """Print one requirement."""
    return run_workflow(args, _show)


def add_show_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``show`` command."""
    p.add_argument("id", help=_("requirement id"))
    p.add_argument("--json", action="store_true", help=_("print JSON"))


async def _complete(context: AppContext, args: argparse.Namespace) -> int:
    record = await _fetch(context, args.id)
    if record is None:
        return EXIT_FAILED
    controller = RequirementListController(context)
    try:
        updated = await controller.complete(record)
    finally:
        await controller.close()
    return EXIT_OK if updated is not None else EXIT_FAILED


def cmd_complete(args: argparse.Namespace) -> int:
    """Mark a requirement complete."""
    return run_workflow(args, _complete)


async def _archive(context: AppContext, args: argparse.Namespace) -> int:
    record = await _fetch(context, args.id)
    if record is None:
        return EXIT_FAILED
    if args.reason is not None:
        context.dialogs = ScriptedDialogs([args.reason])
    controller = RequirementListController(context)
    try:
        updated = await controller.archive(record)
    finally:
        await controller.close()
    return EXIT_OK if updated is not None else EXIT_FAILED


def cmd_archive(args: argparse.Namespace) -> int:
    """Archive a requirement with a reason."""
    return run_workflow(args, _archive)


def add_archive_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``archive`` command."""
    p.add_argument("id", help=_("requirement id"))
    p.add_argument("--reason", help=_("reason for archiving"))


async def _restore(context: AppContext, args: argparse.Namespace) -> int:
    record = await _fetch(context, args.id)
    if record is None:
        return EXIT_FAILED
    controller = RequirementDetailController(context, record)
    return EXIT_OK if await controller.restore() else EXIT_FAILED


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore an archived requirement."""
    return run_workflow(args, _restore)


def add_restore_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``restore`` command."""
    p.add_argument("id", help=_("requirement id"))
    p.add_argument("-y", "--yes", action="store_true", help=_("do not ask for confirmation"))


async def _dismiss(context: AppContext, args: argparse.Namespace) -> int:
    records: list[Requirement] = []
    for requirement_id in args.ids:
        record = await _fetch(context, requirement_id)
        if record is None:
            return EXIT_FAILED
        records.append(record)
    controller = RequirementListController(context)
    try:
        ok = await controller.dismiss(records, confirm=not args.yes, reason=args.reason)
    finally:
        await controller.close()
    return EXIT_OK if ok else EXIT_FAILED


def cmd_dismiss(args: argparse.Namespace) -> int:
    """Archive requirements as not applicable."""
    return run_workflow(args, _dismiss)


def add_dismiss_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``dismiss`` command."""
    p.add_argument("ids", nargs="+", help=_("requirement ids"))
    p.add_argument("--reason", help=_("shared reason for archiving"))
    p.add_argument("-y", "--yes", action="store_true", help=_("do not ask for confirmation"))


def _triage_form(args: argparse.Namespace) -> TriageForm:
    return TriageForm(
        status=args.set_status or "",
        frequency=args.frequency or "",
        anchor_type=args.anchor_type or "",
        anchor_date=args.anchor_date or "",
        due_date=args.due_date or "",
        interval=str(args.interval) if args.interval is not None else "",
        assignee=args.assignee or "",
    )


async def _triage(context: AppContext, args: argparse.Namespace) -> int:
    controller = RequirementListController(context)
    try:
        ok = await controller.submit_triage(_triage_form(args), ids=args.ids)
    finally:
        await controller.close()
    return EXIT_OK if ok else EXIT_FAILED


def cmd_triage(args: argparse.Namespace) -> int:
    """Apply triage values to requirements awaiting review."""
    return run_workflow(args, _triage)


def add_triage_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``triage`` command."""
    p.add_argument("ids", nargs="+", help=_("requirement ids"))
    p.add_argument(
        "--status", dest="set_status", choices=STATUS_CHOICES, help=_("new status")
    )
    p.add_argument("--frequency", choices=FREQUENCY_CHOICES, help=_("recurrence"))
    p.add_argument("--anchor-type", choices=ANCHOR_CHOICES, help=_("schedule reference"))
    p.add_argument("--anchor-date", help=_("reference date (YYYY-MM-DD)"))
    p.add_argument("--due-date", help=_("due date (YYYY-MM-DD)"))
    p.add_argument("--interval", type=int, help=_("interval for every-N schedules"))
    p.add_argument("--assignee", help=_("assignee email"))


async def _document(context: AppContext, args: argparse.Namespace) -> int:
    settled: list[DocumentRecord | None] = []

    def _on_update(record: DocumentRecord) -> None:
        sys.stdout.write(f"{record.id}\t{record.status}\n")

    def _on_settled(record: DocumentRecord | None) -> None:
        settled.append(record)

    polling = context.settings.polling
    poller = DocumentPoller(
        context.client.get_document,
        context.notifier,
        interval=polling.interval_seconds,
        retry_interval=polling.retry_interval_seconds,
        on_update=_on_update,
        on_settled=_on_settled,
        on_unauthenticated=lambda exc: context.report_failure(exc, _("Not signed in.")),
    )
    poller.track(args.id)
    try:
        await poller.wait()
    finally:
        await poller.stop()
    if context.navigator.location.path == context.settings.ui.login_path:
        sys.stdout.write(_("Not signed in.") + "\n")
        return EXIT_UNAUTHENTICATED
    return EXIT_OK if settled and settled[0] is not None else EXIT_FAILED


def cmd_document(args: argparse.Namespace) -> int:
    """Wait until an uploaded document is processed."""
    return run_workflow(args, _document)


def add_document_arguments(p: argparse.ArgumentParser) -> None:
    """Configure parser for the ``document`` command."""
    p.add_argument("id", help=_("document id"))


def add_id_argument(p: argparse.ArgumentParser) -> None:
    p.add_argument("id", help=_("requirement id"))


COMMANDS: dict[str, Command] = {
    "list": Command(cmd_list, _("list requirements"), add_list_arguments),
    "show": Command(cmd_show, _("show requirement"), add_show_arguments),
    "complete": Command(cmd_complete, _("mark requirement complete"), add_id_argument),
    "archive": Command(cmd_archive, _("archive requirement"), add_archive_arguments),
    "restore": Command(cmd_restore, _("restore archived requirement"), add_restore_arguments),
    "dismiss": Command(cmd_dismiss, _("archive requirements as not applicable"), add_dismiss_arguments),
    "triage": Command(cmd_triage, _("triage requirements"), add_triage_arguments),
    "document": Command(cmd_document, _("wait for document processing"), add_document_arguments),
}
