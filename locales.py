"""UI language code to engine locale mapping."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from models import LocalePair

DEFAULT_LANGUAGE = "en"

# BCP-47 codes understood by both the remote service and the fallback engine.
_LOCALES = {
    "en": "en-IN",
    "hi": "hi-IN",
    "mr": "mr-IN",
    "gu": "gu-IN",
    "bn": "bn-IN",
    "ta": "ta-IN",
    "te": "te-IN",
    "kn": "kn-IN",
    "ur": "ur-PK",
}

LOCALE_MAP: Mapping[str, LocalePair] = MappingProxyType(
    {code: LocalePair(remote=locale, fallback=locale) for code, locale in _LOCALES.items()}
)


def resolve_locale(language_code: str) -> LocalePair:
    """Return the locale pair for ``language_code``, defaulting to English."""
    key = (language_code or "").strip().lower()
    return LOCALE_MAP.get(key, LOCALE_MAP[DEFAULT_LANGUAGE])
