"""Static, hand-authored content used when generation is unavailable.

The fallback library is the base case of the content pipeline's
degradation chain: :meth:`FallbackLibrary.lookup` never raises and
always returns a complete payload for every ``(kind, language)`` pair.
Scripts are additionally keyed by scenario, with
``general_interaction`` as the guaranteed default so an unknown
scenario still resolves.

Fallback records are never persisted: they carry ``version == 0`` and
``verified == False``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Final

import structlog

from config.languages import get_language
from src.models.content import (
    ContentRecord,
    ContentRequest,
    EmergencyMessagePayload,
    LegalCardPayload,
    ScriptPayload,
)
from src.models.enums import ContentKind, InteractionScenario, Language

logger = structlog.get_logger(__name__)

APP_NAME: Final[str] = "KnowYourRights Now"

# Context keys understood by the emergency message template.
CTX_USER_NAME: Final[str] = "user_name"
CTX_USER_PHONE: Final[str] = "user_phone"
CTX_LOCATION: Final[str] = "location"
CTX_TIMESTAMP: Final[str] = "timestamp"
CTX_SUBJECT: Final[str] = "subject"


# ---------------------------------------------------------------------------
# Legal rights cards
# ---------------------------------------------------------------------------

_LEGAL_CARDS: Final[dict[Language, LegalCardPayload]] = {
    Language.EN: LegalCardPayload(
        rights=[
            "You have the right to remain silent",
            "You have the right to refuse searches without a warrant",
            "You have the right to ask if you are free to leave",
            "You have the right to an attorney",
        ],
        dos=[
            "Stay calm and polite",
            "Keep your hands visible",
            "Ask 'Am I free to leave?'",
            "Remember details for later",
        ],
        donts=[
            "Don't argue or resist",
            "Don't consent to searches",
            "Don't answer questions without a lawyer",
            "Don't make sudden movements",
        ],
        key_laws=[
            "Fourth Amendment - Protection against unreasonable searches",
            "Fifth Amendment - Right against self-incrimination",
            "Miranda Rights - Must be read upon arrest",
        ],
        emergency_numbers=["911", "ACLU Hotline: 877-328-2258"],
    ),
    Language.ES: LegalCardPayload(
        rights=[
            "Tiene derecho a permanecer en silencio",
            "Tiene derecho a negarse a un registro sin una orden judicial",
            "Tiene derecho a preguntar si es libre de irse",
            "Tiene derecho a un abogado",
        ],
        dos=[
            "Mantenga la calma y sea cortés",
            "Mantenga las manos visibles",
            "Pregunte '¿Soy libre de irme?'",
            "Recuerde los detalles para después",
        ],
        donts=[
            "No discuta ni se resista",
            "No consienta a registros",
            "No responda preguntas sin un abogado",
            "No haga movimientos bruscos",
        ],
        key_laws=[
            "Cuarta Enmienda - Protección contra registros irrazonables",
            "Quinta Enmienda - Derecho a no autoincriminarse",
            "Derechos Miranda - Deben leerse al momento del arresto",
        ],
        emergency_numbers=["911", "Línea de ayuda de ACLU: 877-328-2258"],
    ),
}


# ---------------------------------------------------------------------------
# De-escalation scripts: (text, usage context) per scenario
# ---------------------------------------------------------------------------

_S = InteractionScenario

_SCRIPTS: Final[dict[Language, dict[str, tuple[str, str]]]] = {
    Language.EN: {
        _S.TRAFFIC_STOP: (
            "Officer, I understand you're doing your job. I'm going to keep my hands "
            "visible and follow your instructions. I want to exercise my right to "
            "remain silent. Am I free to leave?",
            "Use this during traffic stops to assert your rights while remaining cooperative.",
        ),
        _S.STREET_QUESTIONING: (
            "Officer, I don't want any trouble. Am I being detained, or am I free to go? "
            "I'm choosing to remain silent and I'd like to leave if I'm not being detained.",
            "Use this when stopped and questioned on the street.",
        ),
        _S.HOME_VISIT: (
            "Officer, I'm speaking to you through the door. I do not consent to you "
            "entering my home. If you have a warrant, please slide it under the door "
            "or hold it up to the window.",
            "Use this when police come to your home. Do not open the door without a warrant.",
        ),
        _S.WORKPLACE_VISIT: (
            "Officer, I'm not authorized to let you into non-public areas. Please speak "
            "with my manager. I'm choosing to remain silent and I'd like to speak with a lawyer.",
            "Use this when police visit your workplace.",
        ),
        _S.SEARCH_REQUEST: (
            "Officer, I do not consent to any searches. I'm not going to resist, but "
            "I am not giving permission. Am I free to leave?",
            "Use this when asked to search you, your car, or your belongings.",
        ),
        _S.ARREST_SITUATION: (
            "Officer, I'm not going to resist. I'm exercising my right to remain silent "
            "and I want to speak with a lawyer. I do not consent to any searches.",
            "Use this if you are being arrested. Say nothing else until your lawyer is present.",
        ),
        _S.CHECKPOINT: (
            "Officer, I'll provide my license and registration. I'm choosing to remain "
            "silent and I do not consent to a search of my vehicle.",
            "Use this at sobriety or immigration checkpoints.",
        ),
        _S.PROTEST_OR_DEMONSTRATION: (
            "Officer, I'm peacefully exercising my First Amendment rights. Am I free to "
            "leave? If you're ordering us to disperse, please tell me which way I can go.",
            "Use this during a protest or demonstration when approached by officers.",
        ),
        _S.GENERAL_INTERACTION: (
            "Officer, I want to be respectful. I'm exercising my right to remain silent. "
            "Am I being detained or am I free to leave?",
            "Use this for general interactions when you're unsure of the situation.",
        ),
    },
    Language.ES: {
        _S.TRAFFIC_STOP: (
            "Oficial, entiendo que está haciendo su trabajo. Voy a mantener mis manos "
            "visibles y seguir sus instrucciones. Quiero ejercer mi derecho a permanecer "
            "en silencio. ¿Soy libre de irme?",
            "Use esto durante paradas de tráfico para afirmar sus derechos mientras se "
            "mantiene cooperativo.",
        ),
        _S.STREET_QUESTIONING: (
            "Oficial, no quiero problemas. ¿Estoy detenido o soy libre de irme? Elijo "
            "permanecer en silencio y me gustaría irme si no estoy detenido.",
            "Use esto cuando lo detengan y le hagan preguntas en la calle.",
        ),
        _S.HOME_VISIT: (
            "Oficial, le hablo a través de la puerta. No doy mi consentimiento para que "
            "entre a mi casa. Si tiene una orden judicial, por favor pásela por debajo "
            "de la puerta o muéstrela por la ventana.",
            "Use esto cuando la policía llegue a su casa. No abra la puerta sin una orden.",
        ),
        _S.WORKPLACE_VISIT: (
            "Oficial, no estoy autorizado para dejarle entrar a áreas privadas. Por favor "
            "hable con mi gerente. Elijo permanecer en silencio y quiero hablar con un abogado.",
            "Use esto cuando la policía visite su lugar de trabajo.",
        ),
        _S.SEARCH_REQUEST: (
            "Oficial, no doy mi consentimiento para ningún registro. No voy a resistirme, "
            "pero no doy permiso. ¿Soy libre de irme?",
            "Use esto cuando le pidan registrarlo a usted, su auto o sus pertenencias.",
        ),
        _S.ARREST_SITUATION: (
            "Oficial, no voy a resistirme. Ejerzo mi derecho a permanecer en silencio y "
            "quiero hablar con un abogado. No doy mi consentimiento para ningún registro.",
            "Use esto si lo están arrestando. No diga nada más hasta que su abogado esté presente.",
        ),
        _S.CHECKPOINT: (
            "Oficial, le daré mi licencia y registro. Elijo permanecer en silencio y no doy "
            "mi consentimiento para registrar mi vehículo.",
            "Use esto en puntos de control de sobriedad o de inmigración.",
        ),
        _S.PROTEST_OR_DEMONSTRATION: (
            "Oficial, estoy ejerciendo pacíficamente mis derechos de la Primera Enmienda. "
            "¿Soy libre de irme? Si nos ordena dispersarnos, por favor dígame por dónde puedo ir.",
            "Use esto durante una protesta o manifestación cuando se le acerquen oficiales.",
        ),
        _S.GENERAL_INTERACTION: (
            "Oficial, quiero ser respetuoso. Estoy ejerciendo mi derecho a permanecer en "
            "silencio. ¿Estoy siendo detenido o soy libre de irme?",
            "Use esto para interacciones generales cuando no esté seguro de la situación.",
        ),
    },
}

DEFAULT_SCENARIO: Final[InteractionScenario] = InteractionScenario.GENERAL_INTERACTION


# ---------------------------------------------------------------------------
# Emergency message templates
# ---------------------------------------------------------------------------

_EMERGENCY_TEMPLATES: Final[dict[Language, str]] = {
    Language.EN: (
        "🚨 EMERGENCY ALERT 🚨\n\n"
        "{user_name} has triggered an emergency alert during a police interaction.\n\n"
        "Location: {location}\n"
        "Time: {timestamp}\n\n"
        "Please check on them immediately or contact local authorities if needed.\n\n"
        "This is an automated message from {app_name} app."
    ),
    Language.ES: (
        "🚨 ALERTA DE EMERGENCIA 🚨\n\n"
        "{user_name} ha activado una alerta de emergencia durante una interacción policial.\n\n"
        "Ubicación: {location}\n"
        "Hora: {timestamp}\n\n"
        "Por favor verifique su estado inmediatamente o contacte a las autoridades "
        "locales si es necesario.\n\n"
        "Este es un mensaje automatizado de la aplicación {app_name}."
    ),
}

EMERGENCY_SUBJECTS: Final[dict[Language, str]] = {
    Language.EN: f"🚨 Emergency Alert - {APP_NAME}",
    Language.ES: f"🚨 Alerta de Emergencia - {APP_NAME}",
}

_UNKNOWN_NAME: Final[dict[Language, str]] = {
    Language.EN: "Unknown",
    Language.ES: "Desconocido",
}

_UNKNOWN_LOCATION: Final[dict[Language, str]] = {
    Language.EN: "Location unavailable",
    Language.ES: "Ubicación no disponible",
}


def format_timestamp(moment: datetime, language: Language) -> str:
    """Format *moment* (converted to UTC) the way alert messages show it."""
    config = get_language(language.value)
    pattern = config.timestamp_format if config is not None else "%Y-%m-%d %H:%M UTC"
    return moment.astimezone(UTC).strftime(pattern)


def legal_card_title(key: str) -> str:
    """Return the display title for a legal card, e.g. ``Legal Rights - NEW YORK``."""
    return f"Legal Rights - {key.replace('_', ' ').upper()}"


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


class FallbackLibrary:
    """Lookup of static content by ``(kind, language)`` and scenario."""

    __slots__ = ()

    def legal_card(self, language: Language) -> LegalCardPayload:
        return _LEGAL_CARDS[language]

    def script(self, scenario: str, language: Language, *, is_premium: bool = False) -> ScriptPayload:
        """Return the script for *scenario*, or the default scenario's script."""
        by_scenario = _SCRIPTS[language]
        text, usage = by_scenario.get(scenario) or by_scenario[DEFAULT_SCENARIO]
        return ScriptPayload(
            scenario=scenario,
            language=language,
            text=text,
            usage_context=usage,
            is_premium_tier=is_premium,
        )

    def emergency_message(self, language: Language, context: dict[str, str]) -> EmergencyMessagePayload:
        """Render the emergency template from the per-alert *context*.

        Missing context values fall back to neutral placeholders; the
        timestamp defaults to now.
        """
        timestamp = context.get(CTX_TIMESTAMP) or format_timestamp(datetime.now(UTC), language)
        text = _EMERGENCY_TEMPLATES[language].format(
            user_name=context.get(CTX_USER_NAME) or _UNKNOWN_NAME[language],
            location=context.get(CTX_LOCATION) or _UNKNOWN_LOCATION[language],
            timestamp=timestamp,
            app_name=APP_NAME,
        )
        subject = context.get(CTX_SUBJECT) or EMERGENCY_SUBJECTS[language]
        return EmergencyMessagePayload(text=text, subject=subject)

    def lookup(self, request: ContentRequest) -> ContentRecord:
        """Return an unversioned, unverified record for *request*.

        Never raises for a valid request.
        """
        title = ""
        if request.kind == ContentKind.LEGAL_CARD:
            payload = self.legal_card(request.language)
            title = legal_card_title(request.key)
        elif request.kind == ContentKind.SCRIPT:
            payload = self.script(request.key, request.language, is_premium=request.is_premium)
        else:
            payload = self.emergency_message(request.language, request.context)
            title = payload.subject

        logger.info(
            "fallback_library.lookup",
            kind=request.kind.value,
            key=request.key,
            language=request.language.value,
        )
        return ContentRecord(
            kind=request.kind,
            key=request.key,
            language=request.language,
            version=0,
            payload=payload.model_dump(mode="json"),
            verified=False,
            title=title,
        )
