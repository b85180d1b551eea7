"""Tests for the static fallback content library."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.models.content import ContentRequest, EmergencyMessagePayload, LegalCardPayload, ScriptPayload
from src.models.enums import ContentKind, InteractionScenario, Language
from src.services.fallback_library import (
    EMERGENCY_SUBJECTS,
    FallbackLibrary,
    format_timestamp,
    legal_card_title,
)


@pytest.fixture
def library() -> FallbackLibrary:
    return FallbackLibrary()


class TestLegalCards:
    @pytest.mark.parametrize("language", list(Language))
    def test_every_language_has_a_complete_card(self, library: FallbackLibrary, language: Language) -> None:
        card = library.legal_card(language)
        assert card.rights and card.dos and card.donts and card.key_laws
        assert "911" in card.emergency_numbers

    def test_lookup_returns_unversioned_unverified_record(self, library: FallbackLibrary) -> None:
        record = library.lookup(ContentRequest(kind=ContentKind.LEGAL_CARD, key="New York"))
        assert record.version == 0
        assert record.verified is False
        assert record.is_persisted is False
        assert record.title == "Legal Rights - NEW YORK"
        assert LegalCardPayload.model_validate(record.payload) == library.legal_card(Language.EN)

    def test_title_format(self) -> None:
        assert legal_card_title("california") == "Legal Rights - CALIFORNIA"


class TestScripts:
    @pytest.mark.parametrize("language", list(Language))
    @pytest.mark.parametrize("scenario", list(InteractionScenario))
    def test_every_scenario_has_a_script(
        self, library: FallbackLibrary, scenario: InteractionScenario, language: Language
    ) -> None:
        script = library.script(scenario.value, language)
        assert script.text, f"missing fallback script for {scenario}/{language}"
        assert script.usage_context
        assert script.scenario == scenario.value
        assert script.language == language

    def test_unknown_scenario_uses_default(self, library: FallbackLibrary) -> None:
        unknown = library.script("boat_inspection", Language.ES)
        default = library.script(InteractionScenario.GENERAL_INTERACTION.value, Language.ES)
        assert unknown.text == default.text
        assert unknown.scenario == "boat_inspection"

    def test_lookup_keeps_premium_flag(self, library: FallbackLibrary) -> None:
        record = library.lookup(
            ContentRequest(kind=ContentKind.SCRIPT, key="traffic_stop", is_premium=True)
        )
        payload = ScriptPayload.model_validate(record.payload)
        assert payload.is_premium_tier is True


class TestEmergencyMessages:
    def test_template_renders_context(self, library: FallbackLibrary) -> None:
        message = library.emergency_message(
            Language.EN,
            {"user_name": "Alex", "location": "123 Main St", "timestamp": "Jan 01, 2026 10:00 AM UTC"},
        )
        assert "Alex has triggered an emergency alert" in message.text
        assert "Location: 123 Main St" in message.text
        assert "Time: Jan 01, 2026 10:00 AM UTC" in message.text
        assert "KnowYourRights Now" in message.text
        assert message.subject == EMERGENCY_SUBJECTS[Language.EN]

    def test_spanish_template_with_missing_context(self, library: FallbackLibrary) -> None:
        message = library.emergency_message(Language.ES, {})
        assert "ALERTA DE EMERGENCIA" in message.text
        assert "Desconocido" in message.text
        assert message.subject == EMERGENCY_SUBJECTS[Language.ES]

    def test_lookup_emergency_record(self, library: FallbackLibrary) -> None:
        record = library.lookup(
            ContentRequest(
                kind=ContentKind.EMERGENCY_MESSAGE,
                key="abc123",
                language=Language.ES,
                context={"user_name": "Ana"},
            )
        )
        payload = EmergencyMessagePayload.model_validate(record.payload)
        assert "Ana ha activado" in payload.text
        assert record.title == payload.subject

    def test_timestamp_formats_per_language(self) -> None:
        moment = datetime(2026, 3, 4, 15, 30, tzinfo=UTC)
        assert format_timestamp(moment, Language.EN) == "Mar 04, 2026 03:30 PM UTC"
        assert format_timestamp(moment, Language.ES) == "04/03/2026 15:30 UTC"
