"""Keyed remote cache with revalidation and background refresh."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..telemetry import log_event

T = TypeVar("T")

DataListener = Callable[[T], None]
ErrorListener = Callable[[Exception], None]


@dataclass(frozen=True)
class CacheKey:
    """Hashable identity of a remote resource: path plus query parameters."""

    path: str
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, path: str, params: Mapping[str, Any] | None = None) -> CacheKey:
        """Build a key from ``params`` ignoring ``None`` values and order."""
        items = tuple(
            sorted(
                (str(name), str(value).lower() if isinstance(value, bool) else str(value))
                for name, value in (params or {}).items()
                if value is not None
            )
        )
        return cls(path, items)

    def as_params(self) -> dict[str, str]:
        return dict(self.params)


Fetcher = Callable[[CacheKey], Awaitable[T]]


class RemoteCache(Generic[T]):
    """Hold the latest response for the active :class:`CacheKey`.

    * ``seed`` is served as :attr:`data` until the first response arrives.
    * Data of the previous key stays visible while a new key loads.
    * Every successful response for the active key is published as it
      resolves, so the last one to resolve wins. Responses for a key that is
      no longer active, or arriving after :meth:`close`, are dropped.
    * A failed fetch keeps :attr:`data` and sets :attr:`error`.
    """

    def __init__(
        self,
        fetcher: Fetcher[T],
        key: CacheKey | None,
        *,
        seed: T | None = None,
        refresh_interval: float | None = None,
        name: str = "cache",
    ) -> None:
        self._fetcher = fetcher
        self._key = key
        self._data: T | None = seed
        self._error: Exception | None = None
        self._refresh_interval = refresh_interval
        self._name = name
        self._inflight = 0
        self._closed = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self._data_listeners: list[DataListener[T]] = []
        self._error_listeners: list[ErrorListener] = []

    # state ---------------------------------------------------------------
    @property
    def key(self) -> CacheKey | None:
        return self._key

    @property
    def data(self) -> T | None:
        return self._data

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def is_validating(self) -> bool:
        """Return ``True`` while any fetch is in flight."""
        return self._inflight > 0

    @property
    def is_loading(self) -> bool:
        """Return ``True`` while fetching with nothing to show yet."""
        return self._inflight > 0 and self._data is None

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self,
        on_data: DataListener[T] | None = None,
        on_error: ErrorListener | None = None,
    ) -> Callable[[], None]:
        """Register listeners and return a callable removing them."""
        if on_data is not None:
            self._data_listeners.append(on_data)
        if on_error is not None:
            self._error_listeners.append(on_error)

        def _unsubscribe() -> None:
            if on_data is not None and on_data in self._data_listeners:
                self._data_listeners.remove(on_data)
            if on_error is not None and on_error in self._error_listeners:
                self._error_listeners.remove(on_error)

        return _unsubscribe

    # fetching ------------------------------------------------------------
    async def revalidate(self) -> T | None:
        """Fetch the active key and return the data published for it.

        Failures are recorded in :attr:`error` and reported to error listeners
        rather than raised. ``None`` is returned when nothing was published.
        """
        key = self._key
        if key is None or self._closed:
            return None
        self._inflight += 1
        log_event(
            "CACHE_REVALIDATE",
            {"cache": self._name, "path": key.path, "params": key.as_params()},
            level=logging.DEBUG,
        )
        try:
            result = await self._fetcher(key)
        except Exception as exc:
            if self._closed or key != self._key:
                return None
            self._error = exc
            log_event(
                "CACHE_ERROR",
                {"cache": self._name, "path": key.path, "error": str(exc)},
                level=logging.WARNING,
            )
            for listener in list(self._error_listeners):
                listener(exc)
            return None
        finally:
            self._inflight -= 1

        if self._closed or key != self._key:
            log_event(
                "CACHE_STALE_DROPPED",
                {"cache": self._name, "path": key.path, "params": key.as_params()},
                level=logging.DEBUG,
            )
            return None
        self._data = result
        self._error = None
        for listener in list(self._data_listeners):
            listener(result)
        return result

    async def set_key(self, key: CacheKey | None) -> T | None:
        """Switch to ``key`` and fetch it; unchanged keys are not refetched."""
        if key == self._key:
            return self._data
        self._key = key
        self._error = None
        return await self.revalidate()

    def mutate(self, data: T) -> None:
        """Publish ``data`` locally without a network round trip."""
        if self._closed:
            return
        self._data = data
        for listener in list(self._data_listeners):
            listener(data)

    # lifecycle -----------------------------------------------------------
    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start(self, *, revalidate_now: bool = True) -> None:
        """Schedule the first fetch and the refresh loop on the running loop."""
        if self._closed:
            raise RuntimeError("cache is closed")
        if revalidate_now:
            self._spawn(self.revalidate())
        if self._refresh_interval:
            self._spawn(self._refresh_loop(self._refresh_interval))

    async def _refresh_loop(self, interval: float) -> None:
        while not self._closed:
            await asyncio.sleep(interval)
            if self._closed:
                break
            await self.revalidate()

    async def close(self) -> None:
        """Stop background work; later responses are ignored."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._data_listeners.clear()
        self._error_listeners.clear()


__all__ = ["CacheKey", "Fetcher", "RemoteCache"]
