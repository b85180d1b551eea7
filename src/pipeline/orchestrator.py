"""Caller-facing engine for KnowYourRights Now.

:class:`SafetyEngine` is the single entry point the API edge talks to.
It validates raw caller input, translating pydantic validation errors
into :class:`~src.services.errors.InvalidRequest` before any I/O, and
delegates to the content pipeline and the alert dispatcher.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from src.models.content import ContentRequest
from src.models.dispatch import EmergencyContact, Location, UserInfo
from src.models.enums import ContentKind, Language
from src.services.errors import InvalidRequest

if TYPE_CHECKING:
    from src.models.content import ContentResult, ScenarioRecommendation
    from src.models.dispatch import DispatchResult
    from src.services.alert_dispatcher import AlertDispatcher
    from src.services.content_pipeline import ContentPipeline

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ())) or "request"
    return f"{field}: {error.get('msg', 'invalid value')}"


def _parse_language(language: str | Language) -> Language:
    try:
        return Language(language)
    except ValueError as exc:
        supported = ", ".join(lang.value for lang in Language)
        raise InvalidRequest(f"unsupported language {language!r}; expected one of {supported}") from exc


class SafetyEngine:
    """Content requests and emergency alerts behind one validated interface.

    Parameters
    ----------
    pipeline:
        Content generation pipeline.
    dispatcher:
        Emergency alert dispatcher.
    """

    __slots__ = ("_dispatcher", "_pipeline")

    def __init__(self, pipeline: ContentPipeline, dispatcher: AlertDispatcher) -> None:
        self._pipeline = pipeline
        self._dispatcher = dispatcher

    @property
    def pipeline(self) -> ContentPipeline:
        return self._pipeline

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def request_content(
        self,
        kind: str | ContentKind,
        key: str,
        language: str | Language = Language.EN,
        *,
        force_refresh: bool = False,
        is_premium: bool = False,
    ) -> ContentResult:
        """Return content for ``(kind, key, language)``.

        Never fails for valid input: generation problems degrade to the
        fallback library.

        Raises
        ------
        InvalidRequest
            For an unknown kind, an empty key, or an unsupported language.
        """
        lang = _parse_language(language)
        try:
            request = ContentRequest(
                kind=kind,
                key=key,
                language=lang,
                force_refresh=force_refresh,
                is_premium=is_premium,
            )
        except ValidationError as exc:
            raise InvalidRequest(_first_error(exc)) from exc

        if request.kind == ContentKind.EMERGENCY_MESSAGE:
            raise InvalidRequest("emergency messages are produced by raise_alert")

        return await self._pipeline.generate(request)

    async def recommend_scenario(
        self,
        description: str,
        jurisdiction: str | None = None,
        language: str | Language = Language.EN,
    ) -> ScenarioRecommendation:
        return await self._pipeline.recommend_scenario(
            description,
            jurisdiction=jurisdiction,
            language=_parse_language(language),
        )

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def raise_alert(
        self,
        contacts: Sequence[EmergencyContact | dict[str, Any]],
        location: Location | dict[str, Any],
        user_info: UserInfo | dict[str, Any] | None = None,
        language: str | Language = Language.EN,
    ) -> DispatchResult:
        """Notify *contacts* that the user needs help.

        Raises
        ------
        InvalidRequest
            If any contact, the location or the user info is malformed.
        NoContacts, NoChannelsAvailable, AllChannelsFailed
            Propagated from the dispatcher.
        """
        lang = _parse_language(language)
        try:
            parsed_contacts = [EmergencyContact.model_validate(c) for c in contacts]
            parsed_location = Location.model_validate(location)
            parsed_user = UserInfo.model_validate(user_info or {})
        except ValidationError as exc:
            raise InvalidRequest(_first_error(exc)) from exc

        logger.info(
            "safety_engine.raise_alert",
            contacts=len(parsed_contacts),
            jurisdiction=parsed_location.jurisdiction,
            language=lang.value,
        )
        return await self._dispatcher.dispatch(parsed_contacts, parsed_location, parsed_user, lang)
