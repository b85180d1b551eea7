"""Emergency alert API endpoint.

``POST /alerts`` fans the alert out to every contact and returns the
dispatch result.  Error statuses are set by the application's engine
error handlers:

* 400 when there are no contacts or no reachable addresses;
* 502 when every attempt failed (the body carries the audit id);
* 422 for malformed contacts, location or language.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from src.models.dispatch import DispatchResult, EmergencyContact, Location, UserInfo

router = APIRouter(prefix="/alerts", tags=["alerts"])


class AlertRequestBody(BaseModel):
    contacts: list[EmergencyContact] = Field(default_factory=list)
    location: Location
    user_info: UserInfo = Field(default_factory=UserInfo)
    language: str = Field(default="en")


class AlertResponse(BaseModel):
    result: DispatchResult
    contacts_reached: int
    contact_outcomes: dict[str, bool]


@router.post("", response_model=AlertResponse)
async def raise_alert(body: AlertRequestBody, request: Request) -> AlertResponse:
    """Notify the user's emergency contacts by SMS and email."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Alert engine not available")

    result = await engine.raise_alert(
        body.contacts,
        body.location,
        body.user_info,
        body.language,
    )
    return AlertResponse(
        result=result,
        contacts_reached=result.contacts_reached,
        contact_outcomes=result.contact_outcomes(),
    )
