"""Content API endpoints: rights cards, scripts and scenario recommendation.

Every endpoint returns a content record plus its provenance tag
(``cache`` / ``fresh`` / ``fallback``).  Generation problems never
surface as errors here; only malformed input is rejected (422).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from src.models.content import ContentResult, ScenarioRecommendation
from src.models.enums import ContentKind

if TYPE_CHECKING:
    from src.pipeline.orchestrator import SafetyEngine

router = APIRouter(prefix="/content", tags=["content"])

_DISCLAIMER = (
    "This information is for educational purposes only and is not legal advice. "
    "Please consult a lawyer."
)


class ContentRequestBody(BaseModel):
    kind: str = Field(..., description="legal_card or script")
    key: str = Field(..., description="Jurisdiction (legal cards) or scenario (scripts)")
    language: str = Field(default="en")
    force_refresh: bool = False
    is_premium: bool = False


class LegalCardRequestBody(BaseModel):
    jurisdiction: str = Field(..., description="State name, 'district_of_columbia' or 'federal'")
    language: str = Field(default="en")
    force_refresh: bool = False


class ScriptRequestBody(BaseModel):
    scenario: str = Field(..., description="Interaction scenario, e.g. traffic_stop")
    language: str = Field(default="en")
    is_premium: bool = False
    force_refresh: bool = False


class RecommendScenarioRequestBody(BaseModel):
    description: str = Field(..., min_length=1, max_length=5000)
    jurisdiction: str | None = None
    language: str = Field(default="en")


class ContentResponse(ContentResult):
    disclaimer: str = _DISCLAIMER


def _engine(request: Request) -> SafetyEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Content engine not available")
    return engine


def _respond(result: ContentResult) -> ContentResponse:
    return ContentResponse(record=result.record, source=result.source)


@router.post("", response_model=ContentResponse)
async def request_content(body: ContentRequestBody, request: Request) -> ContentResponse:
    """Return a rights card or script, generating it if necessary."""
    result = await _engine(request).request_content(
        body.kind,
        body.key,
        body.language,
        force_refresh=body.force_refresh,
        is_premium=body.is_premium,
    )
    return _respond(result)


@router.post("/legal-card", response_model=ContentResponse)
async def legal_card(body: LegalCardRequestBody, request: Request) -> ContentResponse:
    """Return the rights card for a jurisdiction."""
    result = await _engine(request).request_content(
        ContentKind.LEGAL_CARD,
        body.jurisdiction,
        body.language,
        force_refresh=body.force_refresh,
    )
    return _respond(result)


@router.post("/script", response_model=ContentResponse)
async def script(body: ScriptRequestBody, request: Request) -> ContentResponse:
    """Return a de-escalation script for an interaction scenario."""
    result = await _engine(request).request_content(
        ContentKind.SCRIPT,
        body.scenario,
        body.language,
        force_refresh=body.force_refresh,
        is_premium=body.is_premium,
    )
    return _respond(result)


@router.post("/recommend-scenario", response_model=ScenarioRecommendation)
async def recommend_scenario(body: RecommendScenarioRequestBody, request: Request) -> ScenarioRecommendation:
    """Suggest the best-matching scenario for a description of an encounter."""
    return await _engine(request).recommend_scenario(
        body.description,
        jurisdiction=body.jurisdiction,
        language=body.language,
    )
