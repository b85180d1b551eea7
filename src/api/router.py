"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Content: legal rights cards, de-escalation scripts, scenario
      recommendation
    * Alerts: emergency fan-out to trusted contacts
    * Health: liveness probe
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import alerts, content, health

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(content.router)
api_router.include_router(alerts.router)
api_router.include_router(health.router)
