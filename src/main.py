"""KnowYourRights Now FastAPI application entry point.

Creates the FastAPI app, configures middleware, maps engine errors to
HTTP responses, includes routers, and owns the lifecycle of every
backend collaborator (generation client, content cache, audit sink,
channel senders, pipeline, dispatcher, engine).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from config.settings import Settings, settings
from src.api.router import api_router
from src.services.errors import AllChannelsFailed, DispatchError, InvalidRequest

if TYPE_CHECKING:
    from src.pipeline.orchestrator import SafetyEngine

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(settings.log_level),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Collaborator wiring
# ---------------------------------------------------------------------------


def build_engine(config: Settings) -> tuple[SafetyEngine, list]:
    """Build the engine and its collaborators from *config*.

    Returns the engine plus the stores that need closing on shutdown.
    """
    from src.pipeline.orchestrator import SafetyEngine
    from src.services.alert_dispatcher import AlertDispatcher
    from src.services.audit import InMemoryAuditSink, RedisAuditSink
    from src.services.cache import CachePolicy, InMemoryContentCache, RedisContentCache
    from src.services.channels import build_senders
    from src.services.content_pipeline import ContentPipeline
    from src.services.fallback_library import FallbackLibrary
    from src.services.llm import GeminiGenerationClient, StaticGenerationClient

    # -- 1. Stores ----------------------------------------------------------
    cache: InMemoryContentCache | RedisContentCache
    audit: InMemoryAuditSink | RedisAuditSink
    if config.redis_url:
        cache = RedisContentCache(config.redis_url)
        audit = RedisAuditSink(config.redis_url)
        logger.info("app.stores_initialised", backend="redis")
    else:
        cache = InMemoryContentCache()
        audit = InMemoryAuditSink()
        logger.info("app.stores_initialised", backend="memory")

    # -- 2. Generation client -----------------------------------------------
    client: GeminiGenerationClient | StaticGenerationClient
    if config.gcp_project_id:
        client = GeminiGenerationClient(
            project_id=config.gcp_project_id,
            region=config.gcp_region,
            model_name=config.vertex_ai_model,
            premium_model_name=config.vertex_ai_premium_model,
            timeout_seconds=config.generation_timeout_seconds,
        )
        logger.info("app.llm_initialised", model=config.vertex_ai_model)
    else:
        # Every generation fails fast and the fallback library answers.
        client = StaticGenerationClient()
        logger.warning("app.llm_not_configured", note="content will be served from the fallback library")

    # -- 3. Channel senders -------------------------------------------------
    senders = build_senders(
        sms_provider=config.sms_provider,
        email_provider=config.email_provider,
        twilio_account_sid=config.twilio_account_sid,
        twilio_auth_token=config.twilio_auth_token,
        twilio_from_number=config.twilio_from_number,
        sendgrid_api_key=config.sendgrid_api_key,
        email_from_address=config.email_from_address,
        timeout_seconds=config.channel_send_timeout_seconds,
    )

    # -- 4. Pipeline, dispatcher, engine ------------------------------------
    pipeline = ContentPipeline(
        client=client,
        cache=cache,
        fallback=FallbackLibrary(),
        audit=audit,
        policy=CachePolicy(allow_unverified=config.serve_unverified_content),
    )
    dispatcher = AlertDispatcher(
        pipeline,
        senders,
        audit,
        channel_timeout_seconds=config.channel_send_timeout_seconds,
        dispatch_timeout_seconds=config.dispatch_timeout_seconds,
    )
    closeables = [store for store in (cache, audit) if hasattr(store, "close")]
    return SafetyEngine(pipeline, dispatcher), closeables


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build every collaborator on startup and close the stores on shutdown."""
    _configure_logging()
    logger.info(
        "app.startup",
        env=settings.env,
        gcp_project=settings.gcp_project_id,
        region=settings.gcp_region,
    )

    app.state.start_time = time.time()
    engine, closeables = build_engine(settings)
    app.state.engine = engine
    app.state.stores = closeables
    logger.info("app.startup_complete")

    yield

    logger.info("app.shutdown_start")
    for store in closeables:
        await store.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="KnowYourRights Now API",
    description=(
        "Jurisdiction-specific rights cards, de-escalation scripts and "
        "one-tap emergency alerts to trusted contacts."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )


# -- Prometheus metrics -----------------------------------------------------
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/api/v1/health"],
).instrument(app).expose(
    app,
    endpoint="/metrics",
    include_in_schema=not settings.is_production,
)


# -- Engine error mapping ---------------------------------------------------


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest) -> ORJSONResponse:
    return ORJSONResponse(status_code=422, content={"error": "invalid_request", "detail": str(exc)})


@app.exception_handler(AllChannelsFailed)
async def all_channels_failed_handler(request: Request, exc: AllChannelsFailed) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=502,
        content={
            "error": "all_channels_failed",
            "detail": str(exc),
            "audit_id": exc.audit_id,
            "result": exc.result.model_dump(mode="json"),
        },
    )


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError) -> ORJSONResponse:
    # NoContacts / NoChannelsAvailable: nothing was attempted.
    return ORJSONResponse(
        status_code=400,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "languages_supported": ["en", "es"],
        "endpoints": {
            "content": "/api/v1/content",
            "legal_card": "/api/v1/content/legal-card",
            "script": "/api/v1/content/script",
            "recommend_scenario": "/api/v1/content/recommend-scenario",
            "alerts": "/api/v1/alerts",
            "health": "/api/v1/health",
        },
    }
