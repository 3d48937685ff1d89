import pytest

from compliance_console.core.model import Requirement
from compliance_console.sync.mirror import RowMirror

pytestmark = pytest.mark.unit


def _rows(*ids, status="OPEN"):
    return [Requirement(id=i, status=status) for i in ids]


def test_replace_and_lookup():
    mirror = RowMirror()
    mirror.replace(_rows("a", "b"))
    assert mirror.ids == ("a", "b")
    assert "a" in mirror
    assert "z" not in mirror
    assert mirror.get("b").id == "b"
    assert mirror.get("z") is None
    assert len(mirror) == 2


def test_upsert_replaces_in_place_or_appends():
    mirror = RowMirror(_rows("a", "b", "c"))
    assert mirror.upsert(Requirement(id="b", status="DONE")) is True
    assert mirror.ids == ("a", "b", "c")
    assert mirror.get("b").status == "DONE"
    assert mirror.upsert(Requirement(id="d")) is False
    assert mirror.ids == ("a", "b", "c", "d")


def test_listeners_receive_snapshots():
    mirror = RowMirror()
    snapshots = []
    unsubscribe = mirror.subscribe(lambda rows: snapshots.append(tuple(r.id for r in rows)))
    mirror.replace(_rows("a"))
    mirror.upsert(Requirement(id="b"))
    mirror.clear()
    unsubscribe()
    mirror.replace(_rows("x"))
    assert snapshots == [("a",), ("a", "b"), ()]


def test_rows_is_a_copy():
    mirror = RowMirror(_rows("a"))
    rows = mirror.rows
    mirror.clear()
    assert [r.id for r in rows] == ["a"]
