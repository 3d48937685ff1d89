"""Pytest configuration for the compliance console test suite."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable, Iterator
from typing import Any, TypeVar

import pytest

from compliance_console import i18n
from compliance_console.api.mock import MockBackend
from compliance_console.context import AppContext
from compliance_console.dialogs import ScriptedDialogs
from compliance_console.log import logger
from compliance_console.navigation import MemoryNavigator
from compliance_console.notify import RecordingNotifier
from compliance_console.settings import AppSettings
from compliance_console.util.time import utc_today

T = TypeVar("T")


@pytest.fixture(autouse=True)
def _english_catalogue() -> Iterator[None]:
    """Every test starts and ends with the source-language catalogue."""
    i18n.activate("en")
    yield
    i18n.activate("en")


@pytest.fixture(autouse=True)
def _quiet_logger() -> Iterator[None]:
    """Keep handlers attached by earlier tests from leaking across tests."""
    prev_handlers = list(logger.handlers)
    prev_level = logger.level
    try:
        yield
    finally:
        for handler in logger.handlers:
            if handler not in prev_handlers:
                handler.close()
        logger.handlers[:] = prev_handlers
        logger.setLevel(prev_level or logging.NOTSET)


@pytest.fixture
def today() -> datetime.date:
    return utc_today()


@pytest.fixture
def backend(today: datetime.date) -> MockBackend:
    return MockBackend.with_sample_data(today)


@pytest.fixture
def settings() -> AppSettings:
    settings = AppSettings()
    settings.api.use_mocks = True
    return settings


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dialogs() -> ScriptedDialogs:
    return ScriptedDialogs()


@pytest.fixture
def navigator() -> MemoryNavigator:
    return MemoryNavigator("/requirements")


@pytest.fixture
def context(
    settings: AppSettings,
    notifier: RecordingNotifier,
    dialogs: ScriptedDialogs,
    navigator: MemoryNavigator,
    backend: MockBackend,
) -> AppContext:
    """Provide a context wired to the in-memory backend."""
    return AppContext(
        settings=settings,
        notifier=notifier,
        dialogs=dialogs,
        navigator=navigator,
        mock_backend=backend,
    )


@pytest.fixture
def run(context: AppContext) -> Callable[[Awaitable[T]], T]:
    """Run a coroutine on a fresh loop and close the HTTP client afterwards."""

    def _run(awaitable: Awaitable[Any]) -> Any:
        async def _main() -> Any:
            try:
                return await awaitable
            finally:
                await context.aclose()

        return asyncio.run(_main())

    return _run
