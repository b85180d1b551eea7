"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``KYR_`` prefix; GCP / infrastructure settings use
their canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the KnowYourRights engine.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``KYR_``; GCP / infra keys
    use their standard names (configured via ``validation_alias``).

    Only the process entry point reads this object.  Services receive
    the values they need as constructor arguments.
    """

    model_config = SettingsConfigDict(
        env_prefix="KYR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    app_name: str = "KnowYourRights Now"

    # ── GCP / Vertex AI Gemini ─────────────────────────────────────────
    gcp_project_id: str = Field(default="", validation_alias="GCP_PROJECT_ID")
    gcp_region: str = Field(default="us-central1", validation_alias="GCP_REGION")
    vertex_ai_model: str = Field(default="gemini-2.0-flash", validation_alias="VERTEX_AI_MODEL")
    vertex_ai_premium_model: str = Field(default="gemini-2.5-pro", validation_alias="VERTEX_AI_PREMIUM_MODEL")
    generation_timeout_seconds: float = Field(default=15.0, gt=0)

    # ── Redis (content cache + audit log) ──────────────────────────────
    # Empty string selects the in-process stores.
    redis_url: str = Field(default="", validation_alias="REDIS_URL")

    # ── SMS ────────────────────────────────────────────────────────────
    sms_provider: Literal["twilio", "mock"] = "mock"
    twilio_account_sid: str = Field(default="", validation_alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str = Field(default="", validation_alias="TWILIO_AUTH_TOKEN")
    twilio_from_number: str = Field(default="", validation_alias="TWILIO_FROM_NUMBER")

    # ── Email ──────────────────────────────────────────────────────────
    email_provider: Literal["sendgrid", "mock"] = "mock"
    sendgrid_api_key: str = Field(default="", validation_alias="SENDGRID_API_KEY")
    email_from_address: str = "noreply@knowyourrights.app"

    # ── Dispatch ───────────────────────────────────────────────────────
    channel_send_timeout_seconds: float = Field(default=10.0, gt=0)
    dispatch_timeout_seconds: float = Field(default=20.0, gt=0)

    # ── Content cache policy ───────────────────────────────────────────
    serve_unverified_content: bool = True

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    # Comma-separated list of allowed origins in production.
    cors_origins: str = ""

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Module-level singleton; import ``settings`` only from the entry point.
settings = Settings()
