import datetime

import pytest

from compliance_console.controllers import RequirementDetailController

pytestmark = pytest.mark.unit


async def _open(context, navigator, requirement_id):
    navigator.push(f"/requirements/{requirement_id}")
    record = await context.requirements_service.fetch(requirement_id)
    return RequirementDetailController(context, record)


def test_standard_record_tracks_status_and_due_date_only(context, navigator, run):
    detail = run(_open(context, navigator, "req-2"))
    assert not detail.triage_mode
    assert not detail.is_dirty
    detail.edit(assignee="someone@example.com", frequency="DAILY")
    assert not detail.is_dirty
    detail.edit(status="DONE")
    assert detail.changed == ("status",)
    assert detail.should_block_unload()


def test_save_patches_changed_fields(context, navigator, backend, notifier, today, run):
    due = (today + datetime.timedelta(days=60)).isoformat()

    async def scenario():
        detail = await _open(context, navigator, "req-2")
        detail.edit(due_date=due)
        return detail, await detail.save()

    detail, saved = run(scenario())
    assert saved
    (call,) = backend.calls("PATCH", "/requirements/req-2")
    assert call.body == {"due_date": f"{due}T12:00:00.000Z"}
    assert notifier.of_kind("success") == ["Requirement updated"]
    assert navigator.path == "/requirements"
    assert not detail.is_dirty
    assert not detail.pending.saving


def test_save_without_changes(context, navigator, backend, notifier, run):
    async def scenario():
        detail = await _open(context, navigator, "req-2")
        return await detail.save()

    assert run(scenario()) is False
    assert notifier.of_kind("info") == ["No changes to save."]
    assert backend.calls("PATCH") == []


def test_triage_record_saves_through_bulk_endpoint(context, navigator, backend, notifier, run):
    async def scenario():
        detail = await _open(context, navigator, "req-4")
        assert detail.triage_mode
        detail.edit(frequency="ONE_TIME", status="READY", assignee="kim@example.com")
        assert set(detail.changed) == {"frequency", "status", "assignee"}
        saved = await detail.save()
        return detail, saved

    detail, saved = run(scenario())
    assert saved
    (call,) = backend.calls("POST", "/requirements/triage/bulk")
    assert call.body["requirement_ids"] == ["req-4"]
    assert call.body["frequency"] == "ONE_TIME"
    assert detail.record.status == "READY"
    assert detail.record.assignee == "kim@example.com"
    assert backend.calls("PATCH") == []


def test_triage_validation_blocks_save(context, navigator, backend, notifier, run):
    async def scenario():
        detail = await _open(context, navigator, "req-4")
        detail.edit(assignee="kim@example.com")
        return await detail.save()

    assert run(scenario()) is False
    assert notifier.of_kind("error") == ["Select a frequency before resolving."]
    assert backend.calls("POST") == []
    assert navigator.path == "/requirements/req-4"


def test_save_failure_reports_server_message(context, navigator, backend, notifier, run):
    backend.fail("PATCH", "/requirements/req-2", status=422, detail="Due date is in the past")

    async def scenario():
        detail = await _open(context, navigator, "req-2")
        detail.edit(status="REVIEW")
        return detail, await detail.save()

    detail, saved = run(scenario())
    assert not saved
    assert notifier.of_kind("error") == ["Due date is in the past"]
    assert detail.is_dirty


def test_archive_then_navigates_to_list(context, navigator, backend, dialogs, notifier, run):
    dialogs.queue("Sold the truck")

    async def scenario():
        detail = await _open(context, navigator, "req-1")
        return detail, await detail.archive()

    detail, archived = run(scenario())
    assert archived
    assert backend.get("req-1")["attributes"]["archive"]["reason"] == "Sold the truck"
    assert detail.retention_disabled
    assert notifier.of_kind("success") == ["Requirement archived"]
    assert navigator.path == "/requirements"


def test_archive_is_unavailable_for_archived_records(context, navigator, backend, dialogs, notifier, run):
    dialogs.queue("again")

    async def scenario():
        detail = await _open(context, navigator, "req-7")
        return await detail.archive()

    assert run(scenario()) is False
    assert dialogs.asked == []
    assert backend.calls("POST", "/requirements/req-7/archive") == []
    assert notifier.messages == []


def test_restore_requires_confirmation(context, navigator, backend, dialogs, notifier, run):
    dialogs.queue(False, True)

    async def scenario():
        detail = await _open(context, navigator, "req-7")
        assert detail.retention_disabled
        declined = await detail.restore()
        accepted = await detail.restore()
        return detail, declined, accepted

    detail, declined, accepted = run(scenario())
    assert not declined
    assert accepted
    assert len(backend.calls("POST", "/requirements/req-7/archive/restore")) == 1
    assert backend.get("req-7")["archive_state"] == "restored"
    assert not detail.retention_disabled
    assert notifier.of_kind("success") == ["Requirement restored"]


def test_restore_is_unavailable_for_active_records(context, navigator, dialogs, run):
    async def scenario():
        detail = await _open(context, navigator, "req-2")
        return await detail.restore()

    assert run(scenario()) is False
    assert dialogs.asked == []


def test_remind_is_disabled_while_archived(context, navigator, notifier, run):
    detail = run(_open(context, navigator, "req-7"))
    detail.remind()
    assert notifier.messages == []
    active = run(_open(context, navigator, "req-2"))
    active.remind()
    assert notifier.of_kind("info") == ["Reminder scheduled"]


def test_request_back_guards_unsaved_changes(context, navigator, dialogs, notifier, run):
    dialogs.queue(False, True)

    async def scenario():
        detail = await _open(context, navigator, "req-2")
        detail.edit(status="DONE")
        stayed = await detail.request_back()
        assert navigator.path == "/requirements/req-2"
        left = await detail.request_back()
        return stayed, left

    stayed, left = run(scenario())
    assert not stayed
    assert left
    assert notifier.of_kind("info") == ["Keep editing to save your updates."]
    assert notifier.of_kind("warning") == ["Unsaved changes were discarded."]
    assert navigator.path == "/requirements"


def test_request_back_without_changes_skips_confirmation(context, navigator, dialogs, run):
    async def scenario():
        detail = await _open(context, navigator, "req-2")
        return await detail.request_back()

    assert run(scenario())
    assert dialogs.asked == []
    assert navigator.path == "/requirements"
