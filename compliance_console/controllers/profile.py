from __future__ import annotations

from dataclasses import dataclass

from ..api.errors import ApiError
from ..context import AppContext
from ..core.model import AuthProfile
from ..i18n import _
from ..telemetry import log_event


@dataclass
class ProfileController:
    """Load the signed-in user and keep their locale preference in sync."""

    context: AppContext
    saving: bool = False

    @property
    def profile(self) -> AuthProfile | None:
        return self.context.profile

    async def load(self) -> AuthProfile | None:
        """Fetch ``/auth/me``; unauthenticated sessions go to the login page."""
        try:
            profile = await self.context.client.get_profile()
        except ApiError as exc:
            if exc.is_unauthenticated:
                self.context.redirect_to_login()
            else:
                self.context.notifier.error(_("Something went wrong"))
            return None
        self.context.profile = profile
        if profile.user.preferred_locale:
            self.context.locale.set_locale(profile.user.preferred_locale)
        return profile

    async def persist_locale(self, locale: str) -> str:
        """Switch the UI locale and store it as the user's preference."""
        applied = self.context.locale.set_locale(locale)
        self.saving = True
        try:
            await self.context.client.update_profile({"preferred_locale": applied})
        except Exception as exc:
            self.context.report_failure(exc, _("Unable to save language preference"))
            raise
        finally:
            self.saving = False
        log_event("PROFILE_LOCALE_SAVED", {"locale": applied})
        return applied


__all__ = ["ProfileController"]
