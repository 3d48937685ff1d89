import pytest

from compliance_console.controllers.selection import SelectionManager, selectable_ids
from compliance_console.core.model import Requirement

pytestmark = pytest.mark.unit


def _row(row_id, status="PENDING_REVIEW"):
    return Requirement(id=row_id, status=status)


PAGE = [_row("a"), _row("b"), _row("c", "OPEN")]


def test_toggle_only_accepts_selectable_rows():
    selection = SelectionManager()
    assert selection.toggle(_row("a"), True)
    assert not selection.toggle(_row("c", "OPEN"), True)
    assert selection.ids == {"a"}
    selection.toggle(_row("a"), False)
    assert len(selection) == 0


def test_toggle_all_touches_only_the_given_page():
    selection = SelectionManager({"other-page"})
    selection.toggle_all(PAGE, True)
    assert selection.ids == {"a", "b", "other-page"}
    selection.toggle_all(PAGE, False)
    assert selection.ids == {"other-page"}


def test_select_all_state():
    selection = SelectionManager()
    state = selection.select_all_state(PAGE)
    assert state.has_selectable and not state.all_selected and not state.some_selected

    selection.toggle(PAGE[0], True)
    state = selection.select_all_state(PAGE)
    assert state.some_selected and state.indeterminate

    selection.toggle(PAGE[1], True)
    state = selection.select_all_state(PAGE)
    assert state.all_selected and not state.indeterminate

    empty = selection.select_all_state([_row("x", "DONE")])
    assert not empty.has_selectable and not empty.all_selected


def test_prune_drops_missing_and_no_longer_pending_rows():
    selection = SelectionManager({"a", "b", "gone"})
    dropped = selection.prune([_row("a"), _row("b", "READY")])
    assert dropped == {"b", "gone"}
    assert selection.ids == {"a"}


def test_selected_rows_keep_row_order():
    selection = SelectionManager({"b", "a"})
    assert [r.id for r in selection.selected_rows(PAGE)] == ["a", "b"]
    selection.discard(["a"])
    assert "a" not in selection
    selection.clear()
    assert not selection.is_selected("b")


def test_should_show():
    assert SelectionManager.should_show([], ["triage"])
    assert SelectionManager.should_show(PAGE, [])
    assert not SelectionManager.should_show([_row("c", "OPEN")], ["active"])


def test_selectable_ids():
    assert selectable_ids(PAGE) == ["a", "b"]
