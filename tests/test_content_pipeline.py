"""Tests for the content generation pipeline."""

from __future__ import annotations

from unittest.mock import AsyncMock

import orjson
import pytest

from src.models.content import ContentRecord, ContentRequest, LegalCardPayload, ScriptPayload
from src.models.enums import ContentKind, GenSource, InteractionScenario, Language
from src.services.audit import AuditEntryType, InMemoryAuditSink
from src.services.cache import CachePolicy, InMemoryContentCache
from src.services.content_pipeline import ContentPipeline, build_prompt
from src.services.errors import GenerationUnavailable, InvalidRequest
from src.services.fallback_library import FallbackLibrary
from src.services.llm import StaticGenerationClient

_CARD_JSON = orjson.dumps(
    {
        "rights": ["Right to remain silent", "Right to an attorney"],
        "dosDonts": {"dos": ["Stay calm"], "donts": ["Don't resist"]},
        "keyLaws": ["Cal. Penal Code 148"],
        "emergencyNumbers": ["911"],
    }
).decode()

_SCRIPT_JSON = orjson.dumps({"script": "Officer, am I free to go?", "context": "Traffic stops"}).decode()


def _pipeline(
    client: StaticGenerationClient,
    cache: InMemoryContentCache | None = None,
    audit: InMemoryAuditSink | None = None,
    policy: CachePolicy | None = None,
) -> ContentPipeline:
    return ContentPipeline(
        client,
        cache if cache is not None else InMemoryContentCache(),
        FallbackLibrary(),
        audit if audit is not None else InMemoryAuditSink(),
        policy,
    )


def _card_request(**kwargs) -> ContentRequest:
    return ContentRequest(kind=ContentKind.LEGAL_CARD, key="california", **kwargs)


# -----------------------------------------------------------------------
# Fresh generation
# -----------------------------------------------------------------------


class TestFreshGeneration:
    async def test_fresh_card_is_persisted_and_audited(self) -> None:
        client = StaticGenerationClient(response=_CARD_JSON)
        cache = InMemoryContentCache()
        audit = InMemoryAuditSink()

        result = await _pipeline(client, cache, audit).generate(_card_request())

        assert result.source == GenSource.FRESH
        assert result.record.version == 1
        assert result.record.verified is False
        assert result.record.title == "Legal Rights - CALIFORNIA"
        card = result.record.payload_model()
        assert isinstance(card, LegalCardPayload)
        assert card.dos == ["Stay calm"]
        assert client.call_count == 1

        stored = await cache.get_latest(ContentKind.LEGAL_CARD, "california", Language.EN)
        assert stored == result.record
        entries = audit.entries(AuditEntryType.CONTENT_GENERATED)
        assert len(entries) == 1
        assert entries[0].payload["id"] == result.record.id

    async def test_generation_parameters_per_kind(self) -> None:
        client = StaticGenerationClient(response=_SCRIPT_JSON)
        await _pipeline(client).generate(
            ContentRequest(kind=ContentKind.SCRIPT, key="traffic_stop", is_premium=True)
        )
        call = client.calls[0]
        assert call["max_tokens"] == 800
        assert call["temperature"] == 0.2
        assert call["premium"] is True
        assert call["json_output"] is True

    async def test_basic_script_uses_standard_model(self) -> None:
        client = StaticGenerationClient(response=_SCRIPT_JSON)
        result = await _pipeline(client).generate(
            ContentRequest(kind=ContentKind.SCRIPT, key="traffic_stop")
        )
        assert client.calls[0]["premium"] is False
        payload = result.record.payload_model()
        assert isinstance(payload, ScriptPayload)
        assert payload.text == "Officer, am I free to go?"

    async def test_prose_wrapped_output_is_repaired(self) -> None:
        client = StaticGenerationClient(response=f"Here is the card:\n{_CARD_JSON}\nGood luck!")
        result = await _pipeline(client).generate(_card_request())
        assert result.source == GenSource.FRESH


# -----------------------------------------------------------------------
# Cache behaviour
# -----------------------------------------------------------------------


class TestCacheBehaviour:
    async def test_cache_hit_makes_no_generation_call(self) -> None:
        client = StaticGenerationClient(response=_CARD_JSON)
        pipeline = _pipeline(client)
        first = await pipeline.generate(_card_request())

        second = await pipeline.generate(_card_request())

        assert second.source == GenSource.CACHE
        assert second.record.version == first.record.version
        assert client.call_count == 1, "a cache hit must not call the generation client"

    async def test_force_refresh_strictly_increases_version(self) -> None:
        client = StaticGenerationClient(response=_CARD_JSON)
        pipeline = _pipeline(client)

        versions = []
        for _ in range(3):
            result = await pipeline.generate(_card_request(force_refresh=True))
            versions.append(result.record.version)

        assert versions == [1, 2, 3]
        assert client.call_count == 3

    async def test_unverified_hit_ignored_under_strict_policy(self) -> None:
        client = StaticGenerationClient(response=_CARD_JSON)
        pipeline = _pipeline(client, policy=CachePolicy(allow_unverified=False))
        await pipeline.generate(_card_request())

        result = await pipeline.generate(_card_request())

        assert result.source == GenSource.FRESH
        assert result.record.version == 2
        assert client.call_count == 2

    async def test_verified_hit_served_under_strict_policy(self) -> None:
        cache = InMemoryContentCache()
        await cache.put(
            ContentRecord(
                kind=ContentKind.LEGAL_CARD,
                key="california",
                language=Language.EN,
                version=1,
                payload=LegalCardPayload(rights=["reviewed"]).model_dump(mode="json"),
                verified=True,
            )
        )
        client = StaticGenerationClient(response=_CARD_JSON)
        result = await _pipeline(client, cache, policy=CachePolicy(allow_unverified=False)).generate(
            _card_request()
        )
        assert result.source == GenSource.CACHE
        assert client.call_count == 0

    async def test_cache_read_failure_counts_as_miss(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cache = InMemoryContentCache()
        monkeypatch.setattr(InMemoryContentCache, "get_latest", AsyncMock(side_effect=ConnectionError("redis down")))
        client = StaticGenerationClient(response=_CARD_JSON)

        result = await _pipeline(client, cache).generate(_card_request())

        assert result.source == GenSource.FRESH

    async def test_cache_write_failure_still_returns_fresh(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cache = InMemoryContentCache()
        monkeypatch.setattr(InMemoryContentCache, "put", AsyncMock(side_effect=ConnectionError("redis down")))
        client = StaticGenerationClient(response=_CARD_JSON)

        result = await _pipeline(client, cache).generate(_card_request())

        assert result.source == GenSource.FRESH
        assert result.record.version == 1

    async def test_audit_failure_is_tolerated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        audit = InMemoryAuditSink()
        monkeypatch.setattr(InMemoryAuditSink, "append", AsyncMock(side_effect=ConnectionError("audit down")))
        client = StaticGenerationClient(response=_CARD_JSON)

        result = await _pipeline(client, audit=audit).generate(_card_request())

        assert result.source == GenSource.FRESH


# -----------------------------------------------------------------------
# Fallback
# -----------------------------------------------------------------------


class TestFallback:
    @pytest.mark.parametrize("language", list(Language))
    async def test_client_failure_returns_library_card(self, language: Language) -> None:
        client = StaticGenerationClient(error=GenerationUnavailable("timeout"))
        audit = InMemoryAuditSink()
        cache = InMemoryContentCache()

        result = await _pipeline(client, cache, audit).generate(_card_request(language=language))

        assert result.source == GenSource.FALLBACK
        assert result.record.version == 0
        assert result.record.verified is False
        expected = FallbackLibrary().legal_card(language).model_dump(mode="json")
        assert result.record.payload == expected
        assert cache.size == 0, "fallback records are never persisted"
        assert len(audit) == 0

    async def test_malformed_output_falls_back(self) -> None:
        client = StaticGenerationClient(response="Sorry, I can't produce JSON today.")
        result = await _pipeline(client).generate(
            ContentRequest(kind=ContentKind.SCRIPT, key="home_visit", language=Language.ES)
        )
        assert result.source == GenSource.FALLBACK
        expected = FallbackLibrary().script("home_visit", Language.ES).model_dump(mode="json")
        assert result.record.payload == expected

    async def test_unexpected_client_error_falls_back(self) -> None:
        client = AsyncMock()
        client.complete.side_effect = KeyError("bug")
        pipeline = ContentPipeline(client, InMemoryContentCache(), FallbackLibrary(), InMemoryAuditSink())
        result = await pipeline.generate(_card_request())
        assert result.source == GenSource.FALLBACK

    async def test_every_list_field_present(self) -> None:
        client = StaticGenerationClient(response='{"rights": ["only rights"]}')
        result = await _pipeline(client).generate(_card_request())
        for field_name in ("rights", "dos", "donts", "key_laws", "emergency_numbers"):
            assert isinstance(result.record.payload[field_name], list)


# -----------------------------------------------------------------------
# Emergency messages
# -----------------------------------------------------------------------


class TestEmergencyMessages:
    async def test_emergency_message_never_read_from_cache(self, location, user_info) -> None:
        client = StaticGenerationClient(response="EMERGENCY: Alex needs help at 123 Main St.")
        cache = InMemoryContentCache()
        pipeline = _pipeline(client, cache)

        first = await pipeline.generate_emergency_message(location, user_info, alert_id="alert1")
        second = await pipeline.generate_emergency_message(location, user_info, alert_id="alert1")

        assert first.source == GenSource.FRESH
        assert second.source == GenSource.FRESH
        assert client.call_count == 2
        assert cache.versions(ContentKind.EMERGENCY_MESSAGE, "alert1", Language.EN) == [1, 2]

    async def test_emergency_prompt_carries_context(self, location, user_info) -> None:
        client = StaticGenerationClient(response="EMERGENCY")
        await _pipeline(client).generate_emergency_message(location, user_info, Language.ES)
        call = client.calls[0]
        assert "Alex Rivera" in call["user_prompt"]
        assert "123 Main St" in call["user_prompt"]
        assert "Spanish" in call["user_prompt"]
        assert call["max_tokens"] == 300
        assert call["temperature"] == 0.1
        assert call["json_output"] is False

    async def test_emergency_fallback_uses_template(self, location, user_info) -> None:
        client = StaticGenerationClient(error=GenerationUnavailable("down"))
        result = await _pipeline(client).generate_emergency_message(location, user_info)
        assert result.source == GenSource.FALLBACK
        assert "Alex Rivera has triggered an emergency alert" in result.record.payload["text"]
        assert "123 Main St, Los Angeles, CA" in result.record.payload["text"]


# -----------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------


class TestPrompts:
    def test_legal_card_prompt(self) -> None:
        prompt = build_prompt(ContentRequest(kind=ContentKind.LEGAL_CARD, key="new_york", language=Language.ES))
        assert "New York" in prompt
        assert "Spanish" in prompt
        assert '"keyLaws"' in prompt

    def test_script_prompt_premium_note(self) -> None:
        premium = build_prompt(ContentRequest(kind=ContentKind.SCRIPT, key="checkpoint", is_premium=True))
        basic = build_prompt(ContentRequest(kind=ContentKind.SCRIPT, key="checkpoint"))
        assert "at a police checkpoint" in premium
        assert "premium script" in premium
        assert "basic script" in basic


# -----------------------------------------------------------------------
# Scenario recommendation
# -----------------------------------------------------------------------


class TestRecommendScenario:
    async def test_parsed_recommendation(self) -> None:
        client = StaticGenerationClient(
            response='{"recommendedScenario": "traffic_stop", "confidence": 0.9, "suggestions": ["Keep hands on wheel"]}'
        )
        rec = await _pipeline(client).recommend_scenario("I got pulled over on the highway", "texas")
        assert rec.scenario == InteractionScenario.TRAFFIC_STOP
        assert rec.confidence == 0.9
        assert rec.suggestions == ["Keep hands on wheel"]
        assert rec.source == GenSource.FRESH
        assert "Jurisdiction: texas" in client.calls[0]["user_prompt"]

    async def test_unknown_scenario_and_bad_confidence_are_clamped(self) -> None:
        client = StaticGenerationClient(response='{"recommendedScenario": "alien_abduction", "confidence": 7}')
        rec = await _pipeline(client).recommend_scenario("something odd")
        assert rec.scenario == InteractionScenario.GENERAL_INTERACTION
        assert rec.confidence == 1.0
        assert rec.suggestions, "missing suggestions fall back to defaults"

    async def test_failure_degrades_to_general_interaction(self) -> None:
        client = StaticGenerationClient(error=GenerationUnavailable("down"))
        rec = await _pipeline(client).recommend_scenario("officer knocked on my door")
        assert rec.scenario == InteractionScenario.GENERAL_INTERACTION
        assert rec.confidence == 0.5
        assert rec.source == GenSource.FALLBACK

    async def test_blank_description_rejected(self) -> None:
        client = StaticGenerationClient(response="{}")
        with pytest.raises(InvalidRequest):
            await _pipeline(client).recommend_scenario("   ")
        assert client.call_count == 0
