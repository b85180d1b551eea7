"""Emergency contact and dispatch models.

Contacts belong to the calling user's profile and are read-only here.
A :class:`DispatchResult` is created once per alert, persisted once as
an audit entry, and never updated afterwards.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from src.models.enums import AttemptOutcome, Channel, GenSource, Language


class EmergencyContact(BaseModel):
    """A person to notify when the user raises an alert.

    Blank ``phone`` / ``email`` values are treated as absent so a
    contact saved with an empty field does not produce a doomed attempt.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    phone: str | None = None
    email: str | None = None
    relationship: str = ""
    is_primary: bool = False

    @field_validator("phone", "email", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @property
    def has_any_channel(self) -> bool:
        return self.phone is not None or self.email is not None


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    address: str | None = None
    jurisdiction: str | None = None

    @property
    def display_text(self) -> str:
        """Human-readable location: the address if known, else coordinates."""
        if self.address:
            return self.address
        return f"{self.latitude:.5f}, {self.longitude:.5f}"


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    phone: str | None = None


class DispatchAttempt(BaseModel):
    """Outcome of sending the alert to one contact over one channel."""

    model_config = ConfigDict(frozen=True)

    contact_id: str
    channel: Channel
    address: str  # masked
    outcome: AttemptOutcome
    error_detail: str | None = None
    elapsed_ms: float = 0.0


class DispatchResult(BaseModel):
    """Aggregated outcome of one emergency alert."""

    model_config = ConfigDict(frozen=True)

    dispatch_id: str = Field(default_factory=lambda: uuid4().hex)
    attempts: list[DispatchAttempt]
    any_succeeded: bool
    dispatched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    language: Language = Language.EN
    message_source: GenSource
    message_record_id: str
    contact_count: int = 0
    location: Location | None = None

    @classmethod
    def from_attempts(
        cls,
        attempts: list[DispatchAttempt],
        **kwargs: Any,
    ) -> DispatchResult:
        """Build a result whose ``any_succeeded`` is derived from *attempts*."""
        return cls(
            attempts=attempts,
            any_succeeded=any(a.outcome == AttemptOutcome.SENT for a in attempts),
            **kwargs,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sent_count(self) -> int:
        return sum(1 for a in self.attempts if a.outcome == AttemptOutcome.SENT)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed_count(self) -> int:
        return sum(1 for a in self.attempts if a.outcome == AttemptOutcome.FAILED)

    def contact_outcomes(self) -> dict[str, bool]:
        """Map each attempted contact id to whether any channel reached it."""
        outcomes: dict[str, bool] = {}
        for attempt in self.attempts:
            reached = attempt.outcome == AttemptOutcome.SENT
            outcomes[attempt.contact_id] = outcomes.get(attempt.contact_id, False) or reached
        return outcomes

    @property
    def contacts_reached(self) -> int:
        return sum(1 for reached in self.contact_outcomes().values() if reached)
