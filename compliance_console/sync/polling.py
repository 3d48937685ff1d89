"""Poll an uploaded document until the service finishes processing it."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..api.errors import ApiError
from ..core.model import DocumentRecord, DocumentStatus
from ..i18n import _
from ..notify import Notifier
from ..telemetry import log_event

logger = logging.getLogger(__name__)

DocumentFetcher = Callable[[str], Awaitable[DocumentRecord]]
UpdateCallback = Callable[[DocumentRecord], None]
SettledCallback = Callable[[DocumentRecord | None], Awaitable[None] | None]
UnauthenticatedCallback = Callable[[ApiError], None]
Sleep = Callable[[float], Awaitable[Any]]


class DocumentPoller:
    """Track at most one document id and poll it on a self-rescheduling task.

    Polling stops on ``READY`` or ``FAILED``, and on a 404, which also clears
    the tracked id. A 401 clears the tracked id and hands the error to
    ``on_unauthenticated`` (usually the login redirect) without a toast. Other failures retry after ``retry_interval`` seconds;
    client errors are reported to the user while doing so. Responses that
    arrive after :meth:`stop` or a newer :meth:`track` are discarded.
    """

    def __init__(
        self,
        fetch: DocumentFetcher,
        notifier: Notifier,
        *,
        interval: float = 5.0,
        retry_interval: float = 8.0,
        on_update: UpdateCallback | None = None,
        on_settled: SettledCallback | None = None,
        on_unauthenticated: UnauthenticatedCallback | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetch = fetch
        self._notifier = notifier
        self.interval = interval
        self.retry_interval = retry_interval
        self._on_update = on_update
        self._on_settled = on_settled
        self._on_unauthenticated = on_unauthenticated
        self._sleep = sleep
        self._tracked_id: str | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def tracked_id(self) -> str | None:
        return self._tracked_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def track(self, document_id: str) -> asyncio.Task[None]:
        """Start polling ``document_id`` immediately, replacing any previous one."""
        self._cancel()
        self._tracked_id = document_id
        generation = self._generation
        self._task = asyncio.ensure_future(self._run(document_id, generation))
        return self._task

    def _cancel(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def stop(self) -> None:
        """Stop polling; a response already in flight is ignored."""
        task = self._task
        self._cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def wait(self) -> None:
        """Wait until the current polling task ends."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _alive(self, generation: int) -> bool:
        return generation == self._generation

    async def _settle(self, record: DocumentRecord | None) -> None:
        if self._on_settled is None:
            return
        result = self._on_settled(record)
        if inspect.isawaitable(result):
            await result

    async def _run(self, document_id: str, generation: int) -> None:
        delay = 0.0
        while True:
            if delay:
                await self._sleep(delay)
            if not self._alive(generation):
                return
            try:
                record = await self._fetch(document_id)
            except ApiError as exc:
                if not self._alive(generation):
                    return
                if exc.is_not_found:
                    log_event("DOCUMENT_POLL_GONE", {"document_id": document_id})
                    self._tracked_id = None
                    await self._settle(None)
                    return
                if exc.is_unauthenticated:
                    log_event("DOCUMENT_POLL_UNAUTHENTICATED", {"document_id": document_id})
                    self._tracked_id = None
                    if self._on_unauthenticated is not None:
                        self._on_unauthenticated(exc)
                    return
                if exc.is_client_error:
                    self._notifier.error(exc.message)
                log_event(
                    "DOCUMENT_POLL_RETRY",
                    {"document_id": document_id, "error": exc.to_dict()},
                    level=logging.WARNING,
                )
                delay = self.retry_interval
                continue
            except Exception:
                if not self._alive(generation):
                    return
                logger.exception("Polling document %s failed", document_id)
                delay = self.retry_interval
                continue

            if not self._alive(generation):
                return
            if self._on_update is not None:
                self._on_update(record)
            if record.status == DocumentStatus.READY.value:
                self._tracked_id = None
                self._notifier.success(_("Document processed"))
                await self._settle(record)
                return
            if record.status == DocumentStatus.FAILED.value:
                self._tracked_id = None
                self._notifier.error(_("Document processing failed"))
                return
            delay = self.interval


__all__ = ["DocumentPoller"]
