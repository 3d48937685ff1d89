"""Runtime gettext translations for the console's two locales."""

from __future__ import annotations

import gettext as _gettext
import os
from collections.abc import Iterable, Sequence
from io import BytesIO
from pathlib import Path
from typing import Final

import polib
from gettext import GNUTranslations, NullTranslations, _expand_lang

__all__ = [
    "_",
    "DOMAIN",
    "LOCALE_DIR",
    "activate",
    "gettext",
    "ngettext",
    "install",
    "get_translation",
]

DOMAIN = "compliance_console"
LOCALE_DIR = Path(__file__).resolve().parent / "locale"

_TRANSLATION: NullTranslations = NullTranslations()


def get_translation() -> NullTranslations:
    """Return the currently active translation object."""
    return _TRANSLATION


def gettext(message: str) -> str:
    """Translate *message* using the active gettext catalogue."""
    return _TRANSLATION.gettext(message)


def ngettext(singular: str, plural: str, number: int) -> str:
    """Translate pluralisable message based on *number*."""
    return _TRANSLATION.ngettext(singular, plural, number)


_: Final = gettext


def install(
    domain: str,
    localedir: str | os.PathLike[str],
    languages: Iterable[str] | None = None,
) -> NullTranslations:
    """Load translations for *domain* and make them the active catalogue.

    Compiled ``.mo`` files are preferred; when none is found the matching
    ``.po`` source is compiled in memory with :mod:`polib`.
    """
    localedir_path = Path(localedir)
    requested = _prepare_language_list(languages)
    translation = _gettext.translation(
        domain,
        localedir=str(localedir_path),
        languages=requested or None,
        fallback=True,
    )
    if type(translation) is NullTranslations:
        fallback = _load_po_translation(domain, localedir_path, requested)
        if fallback is not None:
            translation = fallback
    _set_translation(translation)
    return translation


def activate(locale: str) -> NullTranslations:
    """Switch the active catalogue to the bundled one for *locale*."""
    if locale == "en":
        translation = NullTranslations()
        _set_translation(translation)
        return translation
    return install(DOMAIN, LOCALE_DIR, [locale])


def _set_translation(translation: NullTranslations) -> None:
    global _TRANSLATION
    _TRANSLATION = translation


def _prepare_language_list(languages: Iterable[str] | None) -> list[str]:
    if languages is None:
        raw: list[str] = []
        for name in ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG"):
            value = os.environ.get(name)
            if value:
                raw.extend(token.strip() for token in value.split(":") if token.strip())
        return _expand_languages(raw)
    return _expand_languages(languages)


def _expand_languages(languages: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    expanded: list[str] = []
    for language in languages:
        if not language:
            continue
        for candidate in _expand_lang(language):
            if candidate and candidate not in seen:
                seen.add(candidate)
                expanded.append(candidate)
    return expanded


def _load_po_translation(
    domain: str,
    localedir: Path,
    languages: Sequence[str],
) -> NullTranslations | None:
    for language in languages:
        po_path = localedir / language / "LC_MESSAGES" / f"{domain}.po"
        if not po_path.exists():
            continue
        try:
            catalog = polib.pofile(str(po_path))
        except (OSError, ValueError):
            continue
        return GNUTranslations(BytesIO(catalog.to_binary()))
    return None
