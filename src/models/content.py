"""Content request, payload, and record models.

A :class:`ContentRequest` is built per call and never mutated.  A
:class:`ContentRecord` is owned by the content cache: the generation
pipeline creates a new record (with a new version) on every refresh
instead of editing an existing one.  Fallback records carry
``version == 0`` because they are never persisted.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any, Final
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from src.models.enums import ContentKind, GenSource, InteractionScenario, Language

_KEY_SEPARATOR_RE: Final[re.Pattern[str]] = re.compile(r"[\s\-]+")


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class ContentRequest(BaseModel):
    """Immutable request for one piece of generated content.

    ``key`` is the jurisdiction (legal cards), the interaction scenario
    (scripts), or an alert identifier (emergency messages).  It is
    normalised to lower snake case so ``"New York"`` and ``new_york``
    share a cache entry.  ``context`` holds per-call values used only in
    prompts and fallback templates; it is not part of the cache key.
    """

    model_config = ConfigDict(frozen=True)

    kind: ContentKind
    key: str
    language: Language = Language.EN
    force_refresh: bool = False
    is_premium: bool = False
    context: dict[str, str] = Field(default_factory=dict)

    @field_validator("key")
    @classmethod
    def _normalise_key(cls, v: str) -> str:
        cleaned = _KEY_SEPARATOR_RE.sub("_", v.strip().lower())
        if not cleaned:
            raise ValueError("jurisdiction or scenario must not be empty")
        return cleaned


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class LegalCardPayload(BaseModel):
    """Rights card for one jurisdiction.

    Every list field is present (possibly empty) and keeps the order in
    which items were produced.  The nested ``dosDonts`` shape and the
    camelCase keys emitted by the generation prompt are accepted on input.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    rights: list[str] = Field(default_factory=list)
    dos: list[str] = Field(default_factory=list)
    donts: list[str] = Field(default_factory=list)
    key_laws: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("key_laws", "keyLaws"),
    )
    emergency_numbers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("emergency_numbers", "emergencyNumbers"),
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_dos_donts(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("dosDonts"), dict):
            nested = data["dosDonts"]
            data = {k: v for k, v in data.items() if k != "dosDonts"}
            data.setdefault("dos", nested.get("dos"))
            data.setdefault("donts", nested.get("donts"))
        return data

    @field_validator("rights", "dos", "donts", "key_laws", "emergency_numbers", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("rights", "dos", "donts", "key_laws", "emergency_numbers")
    @classmethod
    def _drop_blank_items(cls, v: list[str]) -> list[str]:
        return [item.strip() for item in v if item.strip()]


class ScriptPayload(BaseModel):
    """De-escalation script for one interaction scenario."""

    scenario: str
    language: Language
    text: str = Field(min_length=1, validation_alias=AliasChoices("text", "script"))
    usage_context: str = Field(
        default="",
        validation_alias=AliasChoices("usage_context", "context"),
    )
    is_premium_tier: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_premium_tier", "isPremium"),
    )

    @field_validator("text", "usage_context", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class EmergencyMessagePayload(BaseModel):
    """Alert text sent to emergency contacts."""

    text: str = Field(min_length=1)
    subject: str = ""


PAYLOAD_MODELS: Final[dict[ContentKind, type[BaseModel]]] = {
    ContentKind.LEGAL_CARD: LegalCardPayload,
    ContentKind.SCRIPT: ScriptPayload,
    ContentKind.EMERGENCY_MESSAGE: EmergencyMessagePayload,
}


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


class ContentRecord(BaseModel):
    """A versioned, immutable piece of content.

    ``version`` starts at 1 for persisted records; ``0`` marks a
    fallback record that was never written to the cache.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    kind: ContentKind
    key: str
    language: Language
    version: int = Field(ge=0)
    payload: dict[str, Any]
    verified: bool = False
    title: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_persisted(self) -> bool:
        return self.version > 0

    def payload_model(self) -> BaseModel:
        """Return the payload validated against its kind's schema."""
        return PAYLOAD_MODELS[self.kind].model_validate(self.payload)

    def with_version(self, version: int) -> ContentRecord:
        """Return a copy of this record renumbered to *version*."""
        return self.model_copy(update={"version": version})


class ContentResult(BaseModel):
    """A content record plus the provenance tag telling where it came from."""

    model_config = ConfigDict(frozen=True)

    record: ContentRecord
    source: GenSource


class ScenarioRecommendation(BaseModel):
    """Best-matching interaction scenario for a free-text encounter description."""

    model_config = ConfigDict(frozen=True)

    scenario: InteractionScenario = InteractionScenario.GENERAL_INTERACTION
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    suggestions: list[str] = Field(default_factory=list)
    source: GenSource = GenSource.FRESH
