from src.models.content import (
    PAYLOAD_MODELS,
    ContentRecord,
    ContentRequest,
    ContentResult,
    EmergencyMessagePayload,
    LegalCardPayload,
    ScenarioRecommendation,
    ScriptPayload,
)
from src.models.dispatch import (
    DispatchAttempt,
    DispatchResult,
    EmergencyContact,
    Location,
    UserInfo,
)
from src.models.enums import (
    AttemptOutcome,
    Channel,
    ContentKind,
    GenSource,
    InteractionScenario,
    Jurisdiction,
    Language,
)

__all__ = [
    "AttemptOutcome",
    "Channel",
    "ContentKind",
    "ContentRecord",
    "ContentRequest",
    "ContentResult",
    "DispatchAttempt",
    "DispatchResult",
    "EmergencyContact",
    "EmergencyMessagePayload",
    "GenSource",
    "InteractionScenario",
    "Jurisdiction",
    "Language",
    "LegalCardPayload",
    "Location",
    "PAYLOAD_MODELS",
    "ScenarioRecommendation",
    "ScriptPayload",
    "UserInfo",
]
