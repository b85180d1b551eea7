"""Content generation pipeline: cache, generate, repair, fall back.

For every :class:`~src.models.content.ContentRequest` the pipeline:

1. Returns the latest cached record (unless ``force_refresh`` is set or
   the kind is an emergency message, which is always per-alert).
2. Builds a kind-specific prompt and makes exactly one generation call.
3. Repairs the raw output into a validated payload.
4. On any generation or repair failure, returns the static fallback
   record tagged ``fallback``.
5. Otherwise persists a new version (``verified=False``), audits it,
   and returns it tagged ``fresh``.

Generation failures never propagate past :meth:`ContentPipeline.generate`;
callers always receive a record plus its provenance tag.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final
from uuid import uuid4

import structlog

from config.languages import get_language
from src.models.content import (
    ContentRecord,
    ContentRequest,
    ContentResult,
    ScenarioRecommendation,
)
from src.models.enums import ContentKind, GenSource, InteractionScenario, Language
from src.services.audit import AuditEntry, AuditEntryType
from src.services.cache import CachePolicy
from src.services.errors import GenerationUnavailable, InvalidRequest, MalformedOutput
from src.services.fallback_library import (
    APP_NAME,
    CTX_LOCATION,
    CTX_SUBJECT,
    CTX_TIMESTAMP,
    CTX_USER_NAME,
    CTX_USER_PHONE,
    EMERGENCY_SUBJECTS,
    format_timestamp,
    legal_card_title,
)
from src.services.schema_repair import ParseMalformed, parse_structured, repair

if TYPE_CHECKING:
    import structlog.stdlib
    from pydantic import BaseModel

    from src.models.dispatch import Location, UserInfo
    from src.services.audit import AuditSink
    from src.services.cache import ContentCache
    from src.services.fallback_library import FallbackLibrary
    from src.services.llm import GenerationClient

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Generation profiles
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _GenerationProfile:
    system_prompt: str
    max_tokens: int
    temperature: float
    json_output: bool


_PROFILES: Final[dict[ContentKind, _GenerationProfile]] = {
    ContentKind.LEGAL_CARD: _GenerationProfile(
        system_prompt=(
            "You are a legal expert specializing in civil rights and police interaction "
            "law. Provide accurate, up-to-date legal information that could help protect "
            "someone's rights during a police encounter."
        ),
        max_tokens=2000,
        temperature=0.3,
        json_output=True,
    ),
    ContentKind.SCRIPT: _GenerationProfile(
        system_prompt=(
            "You are an expert in conflict de-escalation and civil rights. Create scripts "
            "that help people communicate effectively with law enforcement while "
            "protecting their rights."
        ),
        max_tokens=800,
        temperature=0.2,
        json_output=True,
    ),
    ContentKind.EMERGENCY_MESSAGE: _GenerationProfile(
        system_prompt=(
            "You are creating emergency alert messages that need to be clear, urgent, "
            "and actionable."
        ),
        max_tokens=300,
        temperature=0.1,
        json_output=False,
    ),
}

_RECOMMENDATION_PROFILE: Final[_GenerationProfile] = _GenerationProfile(
    system_prompt=(
        "You are an expert in analyzing police interaction scenarios to provide "
        "appropriate guidance."
    ),
    max_tokens=500,
    temperature=0.3,
    json_output=True,
)

_FALLBACK_SUGGESTIONS: Final[dict[Language, list[str]]] = {
    Language.EN: [
        "Stay calm and polite",
        "Keep your hands visible",
        "Ask if you are free to leave",
        "Exercise your right to remain silent",
    ],
    Language.ES: [
        "Mantenga la calma y sea cortés",
        "Mantenga las manos visibles",
        "Pregunte si es libre de irse",
        "Ejerza su derecho a permanecer en silencio",
    ],
}


# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------

SCENARIO_DESCRIPTIONS: Final[dict[str, str]] = {
    InteractionScenario.TRAFFIC_STOP: "during a traffic stop",
    InteractionScenario.STREET_QUESTIONING: "when being questioned on the street",
    InteractionScenario.HOME_VISIT: "when police visit your home",
    InteractionScenario.WORKPLACE_VISIT: "when police visit your workplace",
    InteractionScenario.SEARCH_REQUEST: "when police request to search you or your property",
    InteractionScenario.ARREST_SITUATION: "during an arrest situation",
    InteractionScenario.CHECKPOINT: "at a police checkpoint",
    InteractionScenario.PROTEST_OR_DEMONSTRATION: "during a protest or demonstration",
    InteractionScenario.GENERAL_INTERACTION: "during a general police interaction",
}

_LEGAL_CARD_PROMPT_TEMPLATE: Final[str] = """\
Generate comprehensive legal rights information for the {jurisdiction} \
jurisdiction in {language}.

Include:
1. Core constitutional rights during police interactions
2. State-specific laws and regulations
3. Clear dos and don'ts
4. Emergency contact numbers

Respond STRICTLY with JSON in this exact structure and nothing else:
{{
    "rights": ["right1", "right2"],
    "dos": ["do1", "do2"],
    "donts": ["dont1", "dont2"],
    "keyLaws": ["law1", "law2"],
    "emergencyNumbers": ["911", "local_number"]
}}

Keep it concise, accurate, and mobile-friendly. Focus on practical, \
actionable information.
"""

_SCRIPT_PROMPT_TEMPLATE: Final[str] = """\
Generate a de-escalation script for use {situation} in {language}.

{tier_note}

The script should:
1. Be respectful and non-confrontational
2. Assert rights clearly but politely
3. De-escalate tension
4. Be easy to remember under stress
5. Include specific phrases to use

Respond STRICTLY with JSON in this exact structure and nothing else:
{{
    "script": "The actual script text with clear phrases",
    "context": "Brief explanation of when and how to use this script"
}}

Keep the script concise but effective.
"""

_PREMIUM_NOTE: Final[str] = (
    "This is a premium script. Include more detailed, nuanced language and "
    "specific legal references."
)
_BASIC_NOTE: Final[str] = "This is a basic script. Keep it simple and straightforward."

_EMERGENCY_PROMPT_TEMPLATE: Final[str] = """\
Generate an emergency alert message in {language} for someone who has \
triggered an emergency alert during a police interaction.

Include:
- Clear emergency indicator
- Person's information: {user_name}, {user_phone}
- Location: {location}
- Time: {timestamp}
- Instructions for the recipient
- App identification: {app_name}

Keep it urgent but clear, suitable for SMS. Reply with the message text only.
"""

_RECOMMENDATION_PROMPT_TEMPLATE: Final[str] = """\
Analyze this police interaction description and provide recommendations \
in {language}.

Description: "{description}"
{jurisdiction_line}
Determine:
1. Most likely scenario type
2. Confidence level (0-1)
3. Specific suggestions for handling this situation

Respond STRICTLY with JSON in this exact structure and nothing else:
{{
    "recommendedScenario": "scenario_type",
    "confidence": 0.85,
    "suggestions": ["suggestion1", "suggestion2"]
}}

Available scenarios: {scenarios}
"""


def _language_name(language: Language) -> str:
    config = get_language(language.value)
    return config.name_english if config is not None else "English"


def build_prompt(request: ContentRequest) -> str:
    """Return the user prompt for *request*'s content kind."""
    language = _language_name(request.language)

    if request.kind == ContentKind.LEGAL_CARD:
        return _LEGAL_CARD_PROMPT_TEMPLATE.format(
            jurisdiction=request.key.replace("_", " ").title(),
            language=language,
        )

    if request.kind == ContentKind.SCRIPT:
        situation = SCENARIO_DESCRIPTIONS.get(
            request.key,
            f"in this situation: {request.key.replace('_', ' ')}",
        )
        return _SCRIPT_PROMPT_TEMPLATE.format(
            situation=situation,
            language=language,
            tier_note=_PREMIUM_NOTE if request.is_premium else _BASIC_NOTE,
        )

    ctx = request.context
    return _EMERGENCY_PROMPT_TEMPLATE.format(
        language=language,
        user_name=ctx.get(CTX_USER_NAME) or "Unknown name",
        user_phone=ctx.get(CTX_USER_PHONE) or "No phone provided",
        location=ctx.get(CTX_LOCATION) or "Unknown location",
        timestamp=ctx.get(CTX_TIMESTAMP) or format_timestamp(datetime.now(UTC), request.language),
        app_name=APP_NAME,
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ContentPipeline:
    """Orchestrates cache, generation client, repair and fallback.

    Parameters
    ----------
    client:
        Generation capability; called at most once per :meth:`generate`.
    cache:
        Versioned content store.  Read failures count as misses and
        write failures are logged; the cache is never a hard dependency.
    fallback:
        Static content library; the terminal step of the degradation chain.
    audit:
        Sink receiving one ``content_generated`` entry per fresh record.
    policy:
        Rules for which cache hits may be served.
    """

    __slots__ = ("_audit", "_cache", "_client", "_fallback", "_policy")

    def __init__(
        self,
        client: GenerationClient,
        cache: ContentCache,
        fallback: FallbackLibrary,
        audit: AuditSink,
        policy: CachePolicy | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._fallback = fallback
        self._audit = audit
        self._policy = policy or CachePolicy()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(self, request: ContentRequest) -> ContentResult:
        """Resolve *request* to a record tagged ``cache``, ``fresh`` or ``fallback``."""
        log = logger.bind(
            kind=request.kind.value,
            key=request.key,
            language=request.language.value,
        )

        if not request.force_refresh and request.kind != ContentKind.EMERGENCY_MESSAGE:
            cached = await self._read_cache(request, log)
            if cached is not None:
                log.info("content_pipeline.cache_hit", version=cached.version)
                return ContentResult(record=cached, source=GenSource.CACHE)

        start = time.perf_counter()
        try:
            payload = await self._generate_payload(request)
        except (GenerationUnavailable, MalformedOutput) as exc:
            log.warning(
                "content_pipeline.fallback",
                reason=type(exc).__name__,
                detail=str(exc),
            )
            return ContentResult(record=self._fallback.lookup(request), source=GenSource.FALLBACK)
        except Exception:
            log.error("content_pipeline.unexpected_generation_error", exc_info=True)
            return ContentResult(record=self._fallback.lookup(request), source=GenSource.FALLBACK)

        record = await self._persist(request, payload, log)
        await self._audit_record(record, log)

        log.info(
            "content_pipeline.fresh",
            version=record.version,
            record_id=record.id,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return ContentResult(record=record, source=GenSource.FRESH)

    async def generate_legal_card(
        self,
        jurisdiction: str,
        language: Language = Language.EN,
        *,
        force_refresh: bool = False,
    ) -> ContentResult:
        return await self.generate(
            ContentRequest(
                kind=ContentKind.LEGAL_CARD,
                key=jurisdiction,
                language=language,
                force_refresh=force_refresh,
            )
        )

    async def generate_script(
        self,
        scenario: str,
        language: Language = Language.EN,
        *,
        is_premium: bool = False,
        force_refresh: bool = False,
    ) -> ContentResult:
        return await self.generate(
            ContentRequest(
                kind=ContentKind.SCRIPT,
                key=scenario,
                language=language,
                is_premium=is_premium,
                force_refresh=force_refresh,
            )
        )

    async def generate_emergency_message(
        self,
        location: Location,
        user_info: UserInfo,
        language: Language = Language.EN,
        *,
        alert_id: str | None = None,
        now: datetime | None = None,
    ) -> ContentResult:
        """Produce the alert text for one emergency dispatch.

        The result is never served from the cache because it embeds the
        caller's location, name and the current time.
        """
        moment = now or datetime.now(UTC)
        context = {
            CTX_USER_NAME: user_info.name or "",
            CTX_USER_PHONE: user_info.phone or "",
            CTX_LOCATION: location.display_text,
            CTX_TIMESTAMP: format_timestamp(moment, language),
            CTX_SUBJECT: EMERGENCY_SUBJECTS[language],
        }
        return await self.generate(
            ContentRequest(
                kind=ContentKind.EMERGENCY_MESSAGE,
                key=alert_id or uuid4().hex,
                language=language,
                context=context,
            )
        )

    async def recommend_scenario(
        self,
        description: str,
        jurisdiction: str | None = None,
        language: Language = Language.EN,
    ) -> ScenarioRecommendation:
        """Classify a free-text encounter description into a scenario.

        Degrades to ``general_interaction`` with confidence 0.5 and
        generic suggestions when generation or parsing fails.

        Raises
        ------
        InvalidRequest
            If *description* is blank.
        """
        if not description.strip():
            raise InvalidRequest("description must not be empty")

        jurisdiction_line = f"Jurisdiction: {jurisdiction}\n" if jurisdiction else ""
        prompt = _RECOMMENDATION_PROMPT_TEMPLATE.format(
            language=_language_name(language),
            description=description.strip(),
            jurisdiction_line=jurisdiction_line,
            scenarios=", ".join(s.value for s in InteractionScenario),
        )

        try:
            raw = await self._client.complete(
                _RECOMMENDATION_PROFILE.system_prompt,
                prompt,
                max_tokens=_RECOMMENDATION_PROFILE.max_tokens,
                temperature=_RECOMMENDATION_PROFILE.temperature,
                json_output=True,
            )
        except GenerationUnavailable as exc:
            logger.warning("content_pipeline.recommendation_fallback", detail=str(exc))
            return self._fallback_recommendation(language)

        parsed = parse_structured(raw)
        if isinstance(parsed, ParseMalformed) or not isinstance(parsed.value, dict):
            logger.warning("content_pipeline.recommendation_malformed")
            return self._fallback_recommendation(language)

        return self._recommendation_from_parsed(parsed.value, language)

    # ------------------------------------------------------------------
    # Generation internals
    # ------------------------------------------------------------------

    async def _generate_payload(self, request: ContentRequest) -> BaseModel:
        profile = _PROFILES[request.kind]
        # Legal cards and premium scripts go to the premium model.
        premium = request.kind == ContentKind.LEGAL_CARD or (
            request.kind == ContentKind.SCRIPT and request.is_premium
        )
        raw = await self._client.complete(
            profile.system_prompt,
            build_prompt(request),
            max_tokens=profile.max_tokens,
            temperature=profile.temperature,
            premium=premium,
            json_output=profile.json_output,
        )
        return repair(request.kind, raw, request)

    async def _read_cache(
        self, request: ContentRequest, log: structlog.stdlib.BoundLogger
    ) -> ContentRecord | None:
        try:
            record = await self._cache.get_latest(request.kind, request.key, request.language)
        except Exception:
            log.warning("content_pipeline.cache_read_failed", exc_info=True)
            return None
        if record is None:
            return None
        if not self._policy.accepts(record):
            log.info("content_pipeline.cache_unverified_skipped", version=record.version)
            return None
        return record

    async def _persist(
        self,
        request: ContentRequest,
        payload: BaseModel,
        log: structlog.stdlib.BoundLogger,
    ) -> ContentRecord:
        if request.kind == ContentKind.LEGAL_CARD:
            title = legal_card_title(request.key)
        elif request.kind == ContentKind.EMERGENCY_MESSAGE:
            title = request.context.get(CTX_SUBJECT, "")
        else:
            title = ""

        try:
            version = await self._cache.next_version(request.kind, request.key, request.language)
        except Exception:
            log.warning("content_pipeline.cache_version_failed", exc_info=True)
            version = 1

        record = ContentRecord(
            kind=request.kind,
            key=request.key,
            language=request.language,
            version=version,
            payload=payload.model_dump(mode="json"),
            verified=False,
            title=title,
        )
        try:
            return await self._cache.put(record)
        except Exception:
            log.warning("content_pipeline.cache_write_failed", version=version, exc_info=True)
            return record

    async def _audit_record(self, record: ContentRecord, log: structlog.stdlib.BoundLogger) -> None:
        try:
            await self._audit.append(AuditEntry.for_model(AuditEntryType.CONTENT_GENERATED, record))
        except Exception:
            log.warning("content_pipeline.audit_failed", record_id=record.id, exc_info=True)

    # ------------------------------------------------------------------
    # Recommendation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _fallback_recommendation(language: Language) -> ScenarioRecommendation:
        return ScenarioRecommendation(
            scenario=InteractionScenario.GENERAL_INTERACTION,
            confidence=0.5,
            suggestions=list(_FALLBACK_SUGGESTIONS[language]),
            source=GenSource.FALLBACK,
        )

    @staticmethod
    def _recommendation_from_parsed(data: dict[str, Any], language: Language) -> ScenarioRecommendation:
        raw_scenario = str(data.get("recommendedScenario") or data.get("scenario") or "")
        try:
            scenario = InteractionScenario(raw_scenario.strip().lower())
        except ValueError:
            scenario = InteractionScenario.GENERAL_INTERACTION

        try:
            confidence = float(data.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        confidence = min(max(confidence, 0.0), 1.0)

        raw_suggestions = data.get("suggestions")
        suggestions = (
            [str(s).strip() for s in raw_suggestions if str(s).strip()]
            if isinstance(raw_suggestions, list)
            else []
        )
        return ScenarioRecommendation(
            scenario=scenario,
            confidence=confidence,
            suggestions=suggestions or list(_FALLBACK_SUGGESTIONS[language]),
            source=GenSource.FRESH,
        )
