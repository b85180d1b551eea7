"""Vertex AI Gemini generation client.

Wraps the ``vertexai`` SDK behind the narrow :class:`GenerationClient`
contract the content pipeline depends on.  The client makes exactly one
outbound call per ``complete`` and never retries: every SDK error,
timeout, or empty response surfaces as :class:`GenerationUnavailable`
so the pipeline can fall back immediately.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Final, Protocol, runtime_checkable

import structlog
import vertexai
from vertexai.generative_models import (
    Content,
    GenerationConfig,
    GenerativeModel,
    Part,
)

from src.services.errors import GenerationUnavailable

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# Approximate cost per million tokens for Gemini 2.0 Flash (USD).
_COST_PER_M_INPUT_TOKENS: Final[float] = 0.10
_COST_PER_M_OUTPUT_TOKENS: Final[float] = 0.40


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


@runtime_checkable
class GenerationClient(Protocol):
    """Async text-generation capability consumed by the content pipeline."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        premium: bool = False,
        json_output: bool = False,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Gemini implementation
# ---------------------------------------------------------------------------


class GeminiGenerationClient:
    """Gemini-backed :class:`GenerationClient`.

    Parameters
    ----------
    project_id:
        GCP project hosting Vertex AI.
    region:
        Vertex AI location.
    model_name:
        Model used for standard requests.
    premium_model_name:
        Model used when the caller asks for premium-tier output.
    timeout_seconds:
        Upper bound on a single ``complete`` call.
    """

    def __init__(
        self,
        project_id: str,
        region: str = "us-central1",
        model_name: str = "gemini-2.0-flash",
        premium_model_name: str | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._project_id = project_id
        self._region = region
        self._model_name = model_name
        self._premium_model_name = premium_model_name or model_name
        self._timeout_seconds = timeout_seconds
        self._models: dict[tuple[str, str], GenerativeModel] = {}
        self._initialized = False

    # -- lifecycle ----------------------------------------------------------

    def _initialize(self) -> None:
        """Lazily initialize the Vertex AI SDK."""
        if self._initialized:
            return
        vertexai.init(project=self._project_id, location=self._region)
        self._initialized = True
        logger.info(
            "llm_initialized",
            project=self._project_id,
            region=self._region,
            model=self._model_name,
            premium_model=self._premium_model_name,
        )

    def _get_model(self, model_name: str, system_prompt: str) -> GenerativeModel:
        self._initialize()
        cache_key = (model_name, system_prompt)
        model = self._models.get(cache_key)
        if model is None:
            model = GenerativeModel(
                model_name=model_name,
                system_instruction=[Part.from_text(system_prompt)],
            )
            self._models[cache_key] = model
        return model

    @staticmethod
    def _estimate_cost(input_tokens: int, output_tokens: int) -> float:
        return round(
            (input_tokens / 1_000_000) * _COST_PER_M_INPUT_TOKENS
            + (output_tokens / 1_000_000) * _COST_PER_M_OUTPUT_TOKENS,
            8,
        )

    # -- public API ---------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        premium: bool = False,
        json_output: bool = False,
    ) -> str:
        """Run one generation and return the raw response text.

        Raises
        ------
        GenerationUnavailable
            On SDK/transport errors, timeout, or an empty response.
        """
        start = time.perf_counter()
        model_name = self._premium_model_name if premium else self._model_name

        generation_config = GenerationConfig(
            temperature=temperature,
            top_p=0.95,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_output else "text/plain",
        )

        try:
            model = self._get_model(model_name, system_prompt)
            async with asyncio.timeout(self._timeout_seconds):
                response = await model.generate_content_async(
                    contents=[Content(role="user", parts=[Part.from_text(user_prompt)])],
                    generation_config=generation_config,
                )
            text = (response.text or "").strip()
        except TimeoutError as exc:
            logger.warning(
                "llm_timeout",
                model=model_name,
                timeout_seconds=self._timeout_seconds,
            )
            raise GenerationUnavailable(f"generation timed out after {self._timeout_seconds}s") from exc
        except Exception as exc:
            logger.warning("llm_call_failed", model=model_name, error=str(exc), exc_info=True)
            raise GenerationUnavailable(f"generation failed: {exc}") from exc

        if not text:
            raise GenerationUnavailable("generation returned empty output")

        elapsed_ms = (time.perf_counter() - start) * 1000
        usage = response.usage_metadata
        input_tokens = usage.prompt_token_count if usage else 0
        output_tokens = usage.candidates_token_count if usage else 0

        logger.info(
            "llm_complete",
            model=model_name,
            prompt_length=len(user_prompt),
            answer_length=len(text),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=self._estimate_cost(input_tokens, output_tokens),
            processing_time_ms=round(elapsed_ms, 2),
        )
        return text


# ---------------------------------------------------------------------------
# Static implementation (local development and tests)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class StaticGenerationClient:
    """Deterministic :class:`GenerationClient` returning canned output.

    Set ``error`` to make every call raise it (wrapped as
    :class:`GenerationUnavailable` unless it already is an engine error).
    Each call's prompts are recorded in ``calls``.
    """

    response: str = ""
    error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int,
        temperature: float,
        premium: bool = False,
        json_output: bool = False,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "premium": premium,
                "json_output": json_output,
            }
        )
        if self.error is not None:
            if isinstance(self.error, GenerationUnavailable):
                raise self.error
            raise GenerationUnavailable(str(self.error)) from self.error
        if not self.response.strip():
            raise GenerationUnavailable("generation returned empty output")
        return self.response
