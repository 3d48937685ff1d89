"""Locally held copy of the rows currently on screen."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Generic, Protocol, TypeVar


class _HasId(Protocol):
    @property
    def id(self) -> str: ...


RowT = TypeVar("RowT", bound=_HasId)
MirrorListener = Callable[[tuple[RowT, ...]], None]


class RowMirror(Generic[RowT]):
    """Ordered rows keyed by ``id``.

    The owning controller writes it in exactly three ways: :meth:`replace`
    with a fresh page from the remote cache, :meth:`upsert` of a single row
    returned by a successful mutation, and :meth:`clear` before the view
    changes. Listeners run after each write.
    """

    def __init__(self, rows: Iterable[RowT] = ()) -> None:
        self._rows: list[RowT] = list(rows)
        self._listeners: list[MirrorListener[RowT]] = []

    @property
    def rows(self) -> tuple[RowT, ...]:
        return tuple(self._rows)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(row.id for row in self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[RowT]:
        return iter(tuple(self._rows))

    def __contains__(self, row_id: object) -> bool:
        return any(row.id == row_id for row in self._rows)

    def get(self, row_id: str) -> RowT | None:
        for row in self._rows:
            if row.id == row_id:
                return row
        return None

    def subscribe(self, listener: MirrorListener[RowT]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _changed(self) -> None:
        snapshot = self.rows
        for listener in list(self._listeners):
            listener(snapshot)

    # writes ----------------------------------------------------------------
    def replace(self, rows: Iterable[RowT]) -> None:
        self._rows = list(rows)
        self._changed()

    def upsert(self, row: RowT) -> bool:
        """Replace the row with the same id in place, appending when absent.

        Returns ``True`` when an existing row was replaced.
        """
        for index, current in enumerate(self._rows):
            if current.id == row.id:
                self._rows[index] = row
                self._changed()
                return True
        self._rows.append(row)
        self._changed()
        return False

    def clear(self) -> None:
        self._rows = []
        self._changed()


__all__ = ["RowMirror", "MirrorListener"]
