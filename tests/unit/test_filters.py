"""Tests for the list filter query codec."""

from itertools import combinations

import pytest

from compliance_console.core.filters import (
    STATUS_QUERY_MAP,
    DueFilter,
    FilterState,
    StatusFilter,
    build_query_params,
    clamp_page,
    decode,
    encode,
    page_count,
    parse_page,
    status_tokens,
    toggle_due_filter,
    toggle_status_filter,
)

pytestmark = pytest.mark.unit


def _subsets(options):
    for size in range(len(options) + 1):
        yield from combinations(options, size)


def test_decode_empty_query():
    assert decode("") == FilterState()
    assert decode("?") == FilterState()


def test_decode_due_drops_unknown_and_normalizes_order():
    state = decode("due=due30,bogus,overdue,overdue")
    assert state.due_filters == (DueFilter.OVERDUE, DueFilter.DUE30)


def test_decode_status_tokens_map_to_buckets():
    state = decode("status=PENDING_REVIEW,review,DONE")
    assert state.status_filters == (
        StatusFilter.ACTIVE,
        StatusFilter.COMPLETED,
        StatusFilter.TRIAGE,
    )


def test_decode_archived_flag_is_exclusive():
    state = decode("status=OPEN,PENDING_REVIEW&archived=true")
    assert state.status_filters == (StatusFilter.ARCHIVED,)
    assert state.is_archived_view


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 1), ("3", 3), ("0", 1), ("-4", 1), ("abc", 1), ("2.5", 1), (" 7 ", 7)],
)
def test_parse_page(raw, expected):
    assert parse_page(raw) == expected


def test_decode_page_falls_back_to_one():
    assert decode("page=zero").page == 1
    assert decode("page=0").page == 1
    assert decode("page=4").page == 4


def test_due_round_trip_for_every_subset():
    for subset in _subsets(list(DueFilter)):
        query = encode("", due_filters=subset)
        assert set(decode(query).due_filters) == set(subset)


def test_status_round_trip_for_non_archived_subsets():
    buckets = [StatusFilter.ACTIVE, StatusFilter.COMPLETED, StatusFilter.TRIAGE]
    for subset in _subsets(buckets):
        query = encode("", status_filters=subset)
        assert set(decode(query).status_filters) == set(subset)


def test_encode_archived_removes_status_and_sets_flag():
    query = encode("status=OPEN,REVIEW&foo=bar", status_filters=[StatusFilter.ARCHIVED])
    assert query == "foo=bar&archived=true"


def test_encode_other_bucket_removes_archived_flag():
    query = encode("archived=true&due=overdue", status_filters=["triage"])
    assert query == "due=overdue&status=PENDING_REVIEW"


def test_encode_no_bucket_removes_status():
    assert encode("status=OPEN&page=2", status_filters=[]) == "page=2"


def test_encode_preserves_unrelated_keys_and_unset_fields():
    query = encode("tab=mine&due=due7&status=DONE,READY", page=3)
    assert query == "tab=mine&due=due7&status=DONE,READY&page=3"


def test_encode_page_one_is_omitted():
    assert encode("page=4&due=overdue", page=1) == "due=overdue"
    assert encode("due=overdue", page=5) == "due=overdue&page=5"


def test_encode_empty_due_removes_key():
    assert encode("due=overdue,due7", due_filters=[]) == ""


def test_status_tokens_are_unioned_in_canonical_order():
    assert status_tokens(["triage", "active"]) == ("OPEN", "REVIEW", "PENDING_REVIEW")
    assert status_tokens([StatusFilter.ARCHIVED]) == ()


def test_status_query_map_is_read_only():
    with pytest.raises(TypeError):
        STATUS_QUERY_MAP[StatusFilter.ACTIVE] = ("OPEN",)  # type: ignore[index]


def test_build_query_params():
    state = decode("due=overdue&status=OPEN&page=2")
    assert build_query_params(state, 10) == {
        "page": 2,
        "limit": 10,
        "due": "overdue",
        "status": "OPEN,REVIEW",
    }
    archived = build_query_params(decode("archived=true"), 5)
    assert archived == {"page": 1, "limit": 5, "archived": "true"}


def test_page_count_and_clamp():
    assert page_count(0, 10) == 1
    assert page_count(25, 10) == 3
    assert clamp_page(5, 25, 10) == 3
    assert clamp_page(0, 25, 10) == 1
    assert clamp_page(2, 25, 10) == 2
    with pytest.raises(ValueError):
        page_count(10, 0)


def test_toggle_due_filter():
    assert toggle_due_filter([], "due30") == (DueFilter.DUE30,)
    assert toggle_due_filter(["due30", "overdue"], "due7") == (
        DueFilter.OVERDUE,
        DueFilter.DUE7,
        DueFilter.DUE30,
    )
    assert toggle_due_filter(["overdue"], "overdue") == ()


def test_toggle_status_filter_exclusivity():
    assert toggle_status_filter(["active", "triage"], "archived") == (StatusFilter.ARCHIVED,)
    assert toggle_status_filter(["archived"], "completed") == (StatusFilter.COMPLETED,)
    assert toggle_status_filter(["archived"], "archived") == ()
    assert toggle_status_filter(["active"], "active") == ()
