"""Translate list filter selections to and from the URL query string.

Two independent dimensions are tracked:

* due-window filters (``overdue``, ``due7``, ``due30``) stored as one
  comma-separated ``due`` value;
* status buckets (``active``, ``completed``, ``archived``, ``triage``) stored
  either as a comma-separated ``status`` value of raw service tokens or, for
  the archived view, as the ``archived=true`` flag.

``archived`` is exclusive of the other buckets. :data:`STATUS_QUERY_MAP` is the
only place that knows which raw tokens make up a bucket; both :func:`decode`
and :func:`encode` read it.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any
from urllib.parse import parse_qsl, urlencode


class DueFilter(str, Enum):
    OVERDUE = "overdue"
    DUE7 = "due7"
    DUE30 = "due30"


class StatusFilter(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    TRIAGE = "triage"


# Declaration order is the canonical order used for output.
STATUS_QUERY_MAP: Mapping[StatusFilter, tuple[str, ...]] = MappingProxyType(
    {
        StatusFilter.ACTIVE: ("OPEN", "REVIEW"),
        StatusFilter.COMPLETED: ("DONE", "READY"),
        StatusFilter.ARCHIVED: (),
        StatusFilter.TRIAGE: ("PENDING_REVIEW",),
    }
)

TOKEN_TO_STATUS: Mapping[str, StatusFilter] = MappingProxyType(
    {
        token: bucket
        for bucket, tokens in STATUS_QUERY_MAP.items()
        for token in tokens
    }
)

DUE_KEY = "due"
STATUS_KEY = "status"
ARCHIVED_KEY = "archived"
PAGE_KEY = "page"


@dataclass(frozen=True)
class FilterState:
    """Filters and page decoded from the current query string."""

    due_filters: tuple[DueFilter, ...] = ()
    status_filters: tuple[StatusFilter, ...] = ()
    page: int = 1

    @property
    def is_archived_view(self) -> bool:
        return StatusFilter.ARCHIVED in self.status_filters

    @property
    def is_empty(self) -> bool:
        return not self.due_filters and not self.status_filters


def _coerce_due(values: Iterable[DueFilter | str]) -> tuple[DueFilter, ...]:
    chosen = {DueFilter(value) for value in values}
    return tuple(option for option in DueFilter if option in chosen)


def _coerce_status(values: Iterable[StatusFilter | str]) -> tuple[StatusFilter, ...]:
    chosen = {StatusFilter(value) for value in values}
    return tuple(option for option in StatusFilter if option in chosen)


def _split(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def _first(pairs: list[tuple[str, str]], key: str) -> str | None:
    for name, value in pairs:
        if name == key:
            return value
    return None


def _parse_pairs(query: str) -> list[tuple[str, str]]:
    return parse_qsl(query.lstrip("?"), keep_blank_values=True)


def parse_page(raw: str | None) -> int:
    """Return ``raw`` as a positive page number, falling back to ``1``."""
    if raw is None:
        return 1
    try:
        page = int(raw.strip())
    except ValueError:
        return 1
    return page if page >= 1 else 1


def decode(query: str) -> FilterState:
    """Decode ``query`` into a :class:`FilterState`.

    Unknown tokens are dropped and output follows the canonical enumeration
    order regardless of input order.
    """
    pairs = _parse_pairs(query)

    due_tokens = set(_split(_first(pairs, DUE_KEY)))
    due = tuple(option for option in DueFilter if option.value in due_tokens)

    if _first(pairs, ARCHIVED_KEY) == "true":
        statuses: tuple[StatusFilter, ...] = (StatusFilter.ARCHIVED,)
    else:
        buckets = {
            TOKEN_TO_STATUS[token]
            for token in (t.upper() for t in _split(_first(pairs, STATUS_KEY)))
            if token in TOKEN_TO_STATUS
        }
        statuses = tuple(option for option in StatusFilter if option in buckets)

    return FilterState(
        due_filters=due,
        status_filters=statuses,
        page=parse_page(_first(pairs, PAGE_KEY)),
    )


def status_tokens(filters: Iterable[StatusFilter | str]) -> tuple[str, ...]:
    """Return the union of raw tokens for ``filters`` in canonical order."""
    chosen = set(_coerce_status(filters))
    tokens: list[str] = []
    for bucket, values in STATUS_QUERY_MAP.items():
        if bucket in chosen:
            tokens.extend(value for value in values if value not in tokens)
    return tuple(tokens)


def _set(pairs: list[tuple[str, str]], key: str, value: str) -> list[tuple[str, str]]:
    """Replace the first ``key`` in place (or append) and drop duplicates."""
    result: list[tuple[str, str]] = []
    written = False
    for name, current in pairs:
        if name != key:
            result.append((name, current))
        elif not written:
            result.append((key, value))
            written = True
    if not written:
        result.append((key, value))
    return result


def _delete(pairs: list[tuple[str, str]], key: str) -> list[tuple[str, str]]:
    return [(name, value) for name, value in pairs if name != key]


def encode(
    query: str,
    *,
    due_filters: Iterable[DueFilter | str] | None = None,
    status_filters: Iterable[StatusFilter | str] | None = None,
    page: int | None = None,
) -> str:
    """Return ``query`` with the given filter fields rewritten.

    Fields passed as ``None`` keep whatever ``query`` already holds, and keys
    this module does not own are preserved in their original position.
    """
    pairs = _parse_pairs(query)

    if due_filters is not None:
        due = _coerce_due(due_filters)
        if due:
            pairs = _set(pairs, DUE_KEY, ",".join(option.value for option in due))
        else:
            pairs = _delete(pairs, DUE_KEY)

    if status_filters is not None:
        statuses = _coerce_status(status_filters)
        if StatusFilter.ARCHIVED in statuses:
            pairs = _delete(pairs, STATUS_KEY)
            pairs = _set(pairs, ARCHIVED_KEY, "true")
        else:
            tokens = status_tokens(statuses)
            if tokens:
                pairs = _set(pairs, STATUS_KEY, ",".join(tokens))
            else:
                pairs = _delete(pairs, STATUS_KEY)
            pairs = _delete(pairs, ARCHIVED_KEY)

    if page is not None:
        if page <= 1:
            pairs = _delete(pairs, PAGE_KEY)
        else:
            pairs = _set(pairs, PAGE_KEY, str(page))

    return urlencode(pairs, safe=",")


def build_query_params(state: FilterState, page_size: int) -> dict[str, Any]:
    """Return request parameters for ``GET /requirements``."""
    params: dict[str, Any] = {"page": state.page, "limit": page_size}
    if state.due_filters:
        params["due"] = ",".join(option.value for option in state.due_filters)
    if state.is_archived_view:
        params["archived"] = "true"
    else:
        tokens = status_tokens(state.status_filters)
        if tokens:
            params["status"] = ",".join(tokens)
    return params


def page_count(total: int, page_size: int) -> int:
    """Return number of pages for ``total`` items, never less than one."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return max(1, math.ceil(max(total, 0) / page_size))


def clamp_page(page: int, total: int, page_size: int) -> int:
    """Clamp ``page`` into ``[1, page_count(total, page_size)]``."""
    return min(max(page, 1), page_count(total, page_size))


def toggle_due_filter(
    current: Iterable[DueFilter | str], value: DueFilter | str
) -> tuple[DueFilter, ...]:
    """Flip ``value`` in ``current`` keeping canonical order."""
    chosen = set(_coerce_due(current))
    option = DueFilter(value)
    if option in chosen:
        chosen.discard(option)
    else:
        chosen.add(option)
    return _coerce_due(chosen)


def toggle_status_filter(
    current: Iterable[StatusFilter | str], value: StatusFilter | str
) -> tuple[StatusFilter, ...]:
    """Flip ``value`` in ``current`` honouring archived exclusivity.

    Choosing ``archived`` clears every other bucket; choosing any other bucket
    clears ``archived``.
    """
    chosen = set(_coerce_status(current))
    option = StatusFilter(value)
    if option is StatusFilter.ARCHIVED:
        if option in chosen:
            return ()
        return (StatusFilter.ARCHIVED,)
    chosen.discard(StatusFilter.ARCHIVED)
    if option in chosen:
        chosen.discard(option)
    else:
        chosen.add(option)
    return _coerce_status(chosen)


__all__ = [
    "DueFilter",
    "StatusFilter",
    "STATUS_QUERY_MAP",
    "TOKEN_TO_STATUS",
    "FilterState",
    "decode",
    "encode",
    "parse_page",
    "status_tokens",
    "build_query_params",
    "page_count",
    "clamp_page",
    "toggle_due_filter",
    "toggle_status_filter",
]
