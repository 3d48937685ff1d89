import asyncio
import datetime

import httpx
import pytest

from compliance_console.api.client import ApiClient
from compliance_console.context import AppContext
from compliance_console.controllers import ProfileController, RequirementListController
from compliance_console.core.filters import StatusFilter
from compliance_console.core.model import Pagination, Requirement, RequirementPage
from compliance_console.core.status import UiStatus
from compliance_console.core.triage import TriageForm

pytestmark = pytest.mark.unit


@pytest.fixture
def controller(context, today):
    return RequirementListController(context, today=lambda: today)


def _row(controller, row_id):
    record = controller.mirror.get(row_id)
    assert record is not None, row_id
    return record


def test_load_builds_view_model(controller, run):
    run(controller.load())
    view = controller.view_model()
    assert [row.record.id for row in view.rows] == [
        "req-1", "req-2", "req-3", "req-4", "req-5", "req-6",
    ]
    statuses = {row.record.id: row.derived_status for row in view.rows}
    assert statuses["req-1"] is UiStatus.OVERDUE
    assert statuses["req-3"] is UiStatus.NEEDS_REVIEW
    assert statuses["req-4"] is UiStatus.NEEDS_TRIAGE
    assert statuses["req-6"] is UiStatus.COMPLETED
    assert [row.record.id for row in view.rows if row.selectable] == ["req-4", "req-5"]
    assert view.show_selection
    assert view.pagination.total == 6
    assert view.pagination.page_count == 1
    assert not view.is_loading


def test_seeded_controller_clamps_page_without_fetching(context, backend):
    seed = RequirementPage(
        items=tuple(Requirement(id=f"r{i}") for i in range(5)),
        pagination=Pagination(page=5, limit=10, total=25),
    )
    controller = RequirementListController(context, seed=seed)
    view = controller.view_model()
    assert len(view.rows) == 5
    assert view.pagination.page == 3
    assert view.pagination.page_count == 3
    assert not view.pagination.has_next
    assert view.pagination.has_previous
    assert backend.calls() == []


def test_complete_marks_done_and_revalidates(context, controller, backend, notifier, run):
    async def scenario():
        await ProfileController(context).load()
        await controller.load()
        return await controller.complete(_row(controller, "req-1"))

    updated = run(scenario())
    assert updated.status == "DONE"
    assert backend.get("req-1")["attributes"]["completed_by"] == "owner@example.com"
    assert notifier.of_kind("success") == ["Requirement marked complete"]
    assert _row(controller, "req-1").status == "DONE"
    assert controller.pending.completing_id is None
    assert len(backend.calls("GET", "/requirements")) == 2


def test_complete_ignores_records_awaiting_triage(controller, backend, run):
    async def scenario():
        await controller.load()
        return await controller.complete(_row(controller, "req-4"))

    assert run(scenario()) is None
    assert backend.calls("POST") == []


def test_complete_failure_shows_server_message(controller, backend, notifier, run):
    backend.fail("POST", "/requirements/req-2/complete", status=409, detail="Already done")

    async def scenario():
        await controller.load()
        return await controller.complete(_row(controller, "req-2"))

    assert run(scenario()) is None
    assert notifier.of_kind("error") == ["Already done"]
    assert controller.pending.completing_id is None


def test_archive_trims_reason(controller, backend, dialogs, notifier, run):
    dialogs.queue("  not applicable  ")

    async def scenario():
        await controller.load()
        return await controller.archive(_row(controller, "req-2"))

    latest = run(scenario())
    assert latest.archive.reason == "not applicable"
    assert backend.get("req-2")["attributes"]["archive"]["reason"] == "not applicable"
    assert notifier.of_kind("success") == ["Requirement archived"]
    assert "req-2" not in controller.mirror
    assert controller.pending.archiving_ids == frozenset()
    assert dialogs.asked == [("prompt", "Provide a reason for archiving this requirement.")]


@pytest.mark.parametrize("answer", ["   ", ""])
def test_archive_rejects_empty_reason(controller, backend, dialogs, notifier, run, answer):
    dialogs.queue(answer)

    async def scenario():
        await controller.load()
        return await controller.archive(_row(controller, "req-2"))

    assert run(scenario()) is None
    assert notifier.of_kind("error") == ["Add a reason to continue."]
    assert backend.calls("POST") == []


def test_archive_cancelled_does_nothing(controller, backend, dialogs, notifier, run):
    dialogs.queue(None)

    async def scenario():
        await controller.load()
        return await controller.archive(_row(controller, "req-2"))

    assert run(scenario()) is None
    assert notifier.messages == []
    assert backend.calls("POST") == []


def test_dismiss_selected_uses_shared_reason(controller, backend, dialogs, notifier, run):
    dialogs.queue(True, "Duplicate entry")

    async def scenario():
        await controller.load()
        controller.toggle_select_all(True)
        return await controller.dismiss_selected()

    assert run(scenario()) is True
    assert dialogs.asked[0] == ("confirm", "Archive 2 requirements as not applicable?")
    for rid in ("req-4", "req-5"):
        assert backend.get(rid)["attributes"]["archive"]["reason"] == "Duplicate entry"
    assert notifier.of_kind("success") == ["Archived 2 requirements"]
    assert len(controller.selection) == 0
    assert "req-4" not in controller.mirror


def test_dismiss_single_uses_default_reason_without_confirmation(controller, backend, notifier, run):
    async def scenario():
        await controller.load()
        return await controller.dismiss([_row(controller, "req-4")], confirm=False)

    assert run(scenario()) is True
    assert backend.get("req-4")["attributes"]["archive"]["reason"] == "Not applicable"
    assert notifier.of_kind("success") == ["Requirement archived"]


def test_dismiss_failure_reports_batch_and_revalidates(controller, backend, notifier, run):
    backend.fail("POST", "/requirements/req-5/archive")

    async def scenario():
        await controller.load()
        rows = [_row(controller, "req-4"), _row(controller, "req-5")]
        return await controller.dismiss(rows, confirm=False)

    assert run(scenario()) is False
    assert notifier.of_kind("error") == ["Mock failure"]
    assert notifier.of_kind("success") == []
    # the other call of the batch went through
    assert backend.get("req-4")["archive_state"] == "archived"
    assert "req-4" not in controller.mirror
    assert "req-5" in controller.mirror
    assert not controller.pending.dismissing


def test_submit_triage_updates_selected_rows(controller, backend, notifier, today, run):
    due = (today + datetime.timedelta(days=30)).isoformat()
    form = TriageForm(status="OPEN", frequency="MONTHLY", due_date=due, assignee="kim@example.com")

    async def scenario():
        await controller.load()
        controller.toggle_selection(_row(controller, "req-5"), True)
        controller.toggle_selection(_row(controller, "req-4"), True)
        return await controller.submit_triage(form)

    assert run(scenario()) is True
    (call,) = backend.calls("POST", "/requirements/triage/bulk")
    assert call.body["requirement_ids"] == ["req-4", "req-5"]
    assert call.body["due_date"] == f"{due}T12:00:00.000Z"
    assert backend.get("req-4")["attributes"]["assignee"] == "kim@example.com"
    assert notifier.of_kind("success") == ["Triage updated"]
    assert len(controller.selection) == 0
    assert _row(controller, "req-4").status == "OPEN"
    assert not controller.pending.submitting_triage


def test_submit_triage_validation_error_sends_nothing(controller, backend, notifier, run):
    async def scenario():
        await controller.load()
        controller.toggle_select_all(True)
        return await controller.submit_triage(TriageForm(status="OPEN"))

    assert run(scenario()) is False
    assert notifier.of_kind("error") == ["Select a frequency before resolving."]
    assert backend.calls("POST") == []
    assert controller.selection.ids == {"req-4", "req-5"}


def test_submit_triage_without_selection(controller, run):
    async def scenario():
        await controller.load()
        return await controller.submit_triage(TriageForm(frequency="DAILY", due_date="2030-01-01"))

    assert run(scenario()) is False


def test_filter_change_clears_mirror_and_selection(controller, navigator, backend, run):
    snapshots = []

    async def scenario():
        await controller.load()
        controller.toggle_selection(_row(controller, "req-4"), True)
        controller.mirror.subscribe(lambda rows: snapshots.append(tuple(r.id for r in rows)))
        await controller.apply_filters([], [StatusFilter.COMPLETED])

    run(scenario())
    assert snapshots[0] == ()
    assert navigator.query == "status=DONE,READY"
    assert controller.mirror.ids == ("req-6",)
    assert len(controller.selection) == 0
    assert controller.filters.status_filters == (StatusFilter.COMPLETED,)
    assert backend.calls("GET", "/requirements")[-1].params["status"] == "DONE,READY"


def test_archived_view_and_clear_filters(controller, navigator, run):
    async def scenario():
        await controller.load()
        await controller.apply_filters(["overdue"], ["archived"])
        archived = controller.mirror.ids
        await controller.clear_filters()
        return archived

    assert run(scenario()) == ("req-7",)
    assert navigator.query == ""
    assert len(controller.mirror) == 6


def test_reapplying_unchanged_filters_refills_rows(controller, backend, run):
    async def scenario():
        await controller.load()
        await controller.apply_filters([], [])
        after_filters = controller.mirror.ids
        await controller.go_to_page(1)
        return after_filters

    assert len(run(scenario())) == 6
    assert len(controller.mirror) == 6
    assert len(backend.calls("GET", "/requirements")) == 3


def test_paging(context, settings, navigator, run):
    settings.requirements.page_size = 2
    controller = RequirementListController(context)

    async def scenario():
        await controller.load()
        await controller.go_to_page(2)
        second = controller.mirror.ids
        await controller.go_to_page(9)
        return second

    assert run(scenario()) == ("req-3", "req-4")
    assert navigator.query == "page=9"
    view = controller.view_model()
    assert view.pagination.page == 3
    assert view.pagination.page_count == 3
    assert controller.mirror.ids == ("req-5", "req-6")


def test_revalidation_prunes_selection(controller, backend, run):
    async def scenario():
        await controller.load()
        controller.toggle_select_all(True)
        backend.get("req-4")["status"] = "OPEN"
        await controller.revalidate()

    run(scenario())
    assert controller.selection.ids == {"req-5"}


def test_unauthenticated_load_redirects_to_login(controller, backend, navigator, notifier, run):
    backend.authenticated = False
    run(controller.load())
    assert navigator.path == "/login"
    assert notifier.messages == []


def test_failed_revalidation_keeps_rows(controller, backend, notifier, run):
    async def scenario():
        await controller.load()
        backend.fail("GET", "/requirements", status=503, detail="Maintenance")
        await controller.revalidate()

    run(scenario())
    assert notifier.of_kind("error") == ["Maintenance"]
    assert len(controller.mirror) == 6
    assert controller.cache.error is not None


def test_network_failure_uses_fallback_message(settings, notifier, dialogs, navigator):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    context = AppContext(
        settings=settings,
        notifier=notifier,
        dialogs=dialogs,
        navigator=navigator,
        client_factory=lambda api: ApiClient(api, transport=httpx.MockTransport(refuse)),
    )
    controller = RequirementListController(context)

    async def scenario():
        try:
            await controller.load()
        finally:
            await context.aclose()

    asyncio.run(scenario())
    assert notifier.of_kind("error") == ["Unable to load requirements"]


def test_remind_and_open_detail(controller, navigator, notifier, run):
    run(controller.load())
    record = _row(controller, "req-1")
    controller.remind(record)
    assert notifier.messages[-1].message == "Reminder scheduled"
    assert notifier.messages[-1].description == "Inspect fire extinguishers"
    controller.open_detail(record)
    assert navigator.path == "/requirements/req-1"


def test_close_stops_cache(controller, run):
    run(controller.close())
    assert controller.cache.closed
