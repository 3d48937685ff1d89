"""Composition root building shared dependencies for the console."""

from __future__ import annotations

from collections.abc import Callable
from typing import Literal, Protocol

from . import i18n
from .api.client import ApiClient
from .api.errors import ApiError
from .api.mock import MockBackend
from .core.model import AuthProfile
from .dialogs import AutoConfirmDialogs, ConsoleDialogs, Dialogs
from .navigation import MemoryNavigator, Navigator
from .notify import ConsoleNotifier, Notifier
from .services.requirements import RequirementsService
from .settings import ApiSettings, AppSettings
from .telemetry import log_event

Locale = Literal["en", "es"]
Theme = Literal["light", "dark"]


def normalize_locale(value: str | None) -> Locale:
    """Map anything starting with ``es`` to ``es`` and the rest to ``en``."""
    return "es" if value and value.lower().startswith("es") else "en"


class LocaleState:
    """Active UI locale, readable anywhere and written through :meth:`set_locale`."""

    def __init__(self, initial: str | None = "en") -> None:
        self._locale: Locale = normalize_locale(initial)
        self._listeners: list[Callable[[Locale], None]] = []
        i18n.activate(self._locale)

    @property
    def locale(self) -> Locale:
        return self._locale

    def subscribe(self, listener: Callable[[Locale], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_locale(self, value: str | None) -> Locale:
        """Switch to ``value`` (normalized) and reinstall the catalogue."""
        locale = normalize_locale(value)
        if locale != self._locale:
            self._locale = locale
            i18n.activate(locale)
            log_event("LOCALE_CHANGED", {"locale": locale})
            for listener in list(self._listeners):
                listener(locale)
        return self._locale


class ThemeState:
    """Light/dark preference with a single writer."""

    def __init__(self, initial: Theme = "light") -> None:
        self._theme: Theme = initial

    @property
    def theme(self) -> Theme:
        return self._theme

    def set_theme(self, value: str) -> Theme:
        self._theme = "dark" if value == "dark" else "light"
        return self._theme

    def toggle(self) -> Theme:
        return self.set_theme("light" if self._theme == "dark" else "dark")


class ApiClientFactory(Protocol):
    """Factory protocol producing :class:`ApiClient` instances."""

    def __call__(self, settings: ApiSettings) -> ApiClient:
        """Return a client configured from ``settings``."""
        raise NotImplementedError


class AppContext:
    """Dependencies passed explicitly to every controller."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        notifier: Notifier,
        dialogs: Dialogs,
        navigator: Navigator,
        client_factory: ApiClientFactory | None = None,
        mock_backend: MockBackend | None = None,
        locale: LocaleState | None = None,
        theme: ThemeState | None = None,
    ) -> None:
        self.settings = settings
        self.notifier = notifier
        self.dialogs = dialogs
        self.navigator = navigator
        self.locale = locale or LocaleState(settings.ui.language)
        self.theme = theme or ThemeState(settings.ui.theme)
        self._mock_backend = mock_backend
        self._client_factory = client_factory or self._default_client_factory
        self._client: ApiClient | None = None
        self._requirements_service: RequirementsService | None = None
        self.profile: AuthProfile | None = None

    # ------------------------------------------------------------------
    def _default_client_factory(self, api_settings: ApiSettings) -> ApiClient:
        if api_settings.use_mocks or self._mock_backend is not None:
            backend = self.mock_backend
            return ApiClient(api_settings, transport=backend.transport())
        return ApiClient(api_settings)

    @property
    def mock_backend(self) -> MockBackend:
        """Return in-memory backend, creating the sample one on first use."""
        if self._mock_backend is None:
            self._mock_backend = MockBackend.with_sample_data()
        return self._mock_backend

    @property
    def client(self) -> ApiClient:
        """Return lazily created :class:`ApiClient`."""
        if self._client is None:
            self._client = self._client_factory(self.settings.api)
        return self._client

    @property
    def requirements_service(self) -> RequirementsService:
        if self._requirements_service is None:
            self._requirements_service = RequirementsService(self.client)
        return self._requirements_service

    @property
    def actor_email(self) -> str | None:
        """Return email of the signed-in user once the profile is loaded."""
        return self.profile.user.email if self.profile else None

    async def aclose(self) -> None:
        """Close the HTTP connection pool; the client reopens it on next use."""
        if self._client is not None:
            await self._client.aclose()

    # ------------------------------------------------------------------
    def redirect_to_login(self) -> None:
        self.navigator.replace(self.settings.ui.login_path)

    def report_failure(self, exc: Exception, fallback: str) -> None:
        """Surface ``exc`` to the user.

        Unauthenticated errors navigate to the login path and never toast.
        Other service errors show the server message; anything else shows
        ``fallback``.
        """
        if isinstance(exc, ApiError):
            if exc.is_unauthenticated:
                log_event("AUTH_REDIRECT", {"status": exc.status})
                self.redirect_to_login()
                return
            if exc.has_server_message:
                self.notifier.error(exc.message)
                return
        self.notifier.error(fallback)

    # ------------------------------------------------------------------
    @classmethod
    def for_cli(
        cls,
        settings: AppSettings,
        *,
        interactive: bool = True,
        initial_path: str = "/requirements",
    ) -> AppContext:
        """Return context wired to the terminal."""
        dialogs: Dialogs = ConsoleDialogs() if interactive else AutoConfirmDialogs()
        return cls(
            settings=settings,
            notifier=ConsoleNotifier(),
            dialogs=dialogs,
            navigator=MemoryNavigator(initial_path),
        )


__all__ = [
    "AppContext",
    "ApiClientFactory",
    "LocaleState",
    "ThemeState",
    "normalize_locale",
]
