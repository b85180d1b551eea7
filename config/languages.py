"""Language configuration for the two supported content languages.

Each ``LanguageConfig`` carries the ISO code, English and native names,
and the phrasing used when instructing the generation model so that
prompt builders never hard-code language names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

__all__ = [
    "LanguageConfig",
    "LANGUAGES",
    "get_language",
    "get_supported_languages",
]


@dataclass(frozen=True, slots=True)
class LanguageConfig:
    """Immutable descriptor for a single supported language."""

    code: str
    """ISO 639-1 (2-letter) code."""

    name_english: str
    """Language name in English, used inside generation prompts."""

    name_native: str
    """Language name in its own language."""

    timestamp_format: str
    """``strftime`` pattern for timestamps shown in alert messages."""


# ---------------------------------------------------------------------------
# Language registry
# ---------------------------------------------------------------------------

LANGUAGES: Final[dict[str, LanguageConfig]] = {
    "en": LanguageConfig(
        code="en",
        name_english="English",
        name_native="English",
        timestamp_format="%b %d, %Y %I:%M %p UTC",
    ),
    "es": LanguageConfig(
        code="es",
        name_english="Spanish",
        name_native="Español",
        timestamp_format="%d/%m/%Y %H:%M UTC",
    ),
}


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def get_language(code: str) -> LanguageConfig | None:
    """Return the ``LanguageConfig`` for *code*, or ``None`` if unsupported."""
    return LANGUAGES.get(code)


def get_supported_languages() -> list[LanguageConfig]:
    """Return all supported languages in registry order."""
    return list(LANGUAGES.values())
