"""Navigation state shared by controllers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

NavigationListener = Callable[["Location"], None]


@dataclass(frozen=True)
class Location:
    """Path plus query string without the leading ``?``."""

    path: str
    query: str = ""

    @classmethod
    def parse(cls, href: str) -> Location:
        parts = urlsplit(href)
        return cls(parts.path or "/", parts.query)

    @property
    def href(self) -> str:
        return f"{self.path}?{self.query}" if self.query else self.path


class Navigator(Protocol):
    """Routing primitives consumed by controllers."""

    @property
    def location(self) -> Location: ...

    def push(self, href: str) -> None: ...

    def replace(self, href: str) -> None: ...

    def back(self) -> None: ...


class MemoryNavigator:
    """Keep navigation history in memory.

    Listeners registered with :meth:`subscribe` run after every location
    change.
    """

    def __init__(self, initial: str = "/") -> None:
        self._history: list[Location] = [Location.parse(initial)]
        self._listeners: list[NavigationListener] = []

    @property
    def location(self) -> Location:
        return self._history[-1]

    @property
    def path(self) -> str:
        return self.location.path

    @property
    def query(self) -> str:
        return self.location.query

    @property
    def history(self) -> tuple[Location, ...]:
        return tuple(self._history)

    def subscribe(self, listener: NavigationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.location)

    def push(self, href: str) -> None:
        self._history.append(Location.parse(href))
        self._notify()

    def replace(self, href: str) -> None:
        self._history[-1] = Location.parse(href)
        self._notify()

    def back(self) -> None:
        if len(self._history) > 1:
            self._history.pop()
            self._notify()


__all__ = ["Location", "Navigator", "MemoryNavigator", "NavigationListener"]
