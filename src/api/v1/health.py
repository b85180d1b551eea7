"""Health check endpoints for the KnowYourRights Now API v1.

Provides liveness and readiness probes for container deployments.
Readiness reports whether the engine has been wired on startup and
whether the Redis stores answer a ping.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual component statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns 200 if the application process is running and able to
    handle requests.  Does *not* check downstream dependencies.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe.

    The engine must be wired.  Stores that can be pinged (Redis) are
    reported too, but an unreachable store only degrades caching, so it
    does not make the instance unready.
    """
    engine = getattr(request.app.state, "engine", None)
    checks = {"engine": "ok" if engine is not None else "not_initialised"}

    for store in getattr(request.app.state, "stores", []):
        if hasattr(store, "ping"):
            checks[type(store).__name__] = "ok" if await store.ping() else "unreachable"

    status = "ready" if engine is not None else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)
