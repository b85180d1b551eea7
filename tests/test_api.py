"""Tests for the HTTP API: content, alerts, health and error mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.pipeline.orchestrator import SafetyEngine

_PHONE_A = "+13105550101"
_EMAIL_A = "a@example.com"
_LOCATION = {"latitude": 34.05223, "longitude": -118.24368, "address": "123 Main St"}


@pytest.fixture
def engine(pipeline, dispatcher) -> SafetyEngine:
    return SafetyEngine(pipeline, dispatcher)


@pytest.fixture
def client(engine):
    """Test client with the engine wired directly (lifespan not run)."""
    from src.main import app

    app.state.engine = engine
    yield TestClient(app)
    del app.state.engine


@pytest.fixture
def bare_client():
    """Test client for an app whose engine was never initialised."""
    from src.main import app

    if hasattr(app.state, "engine"):
        del app.state.engine
    return TestClient(app)


# -----------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------


class TestContentEndpoints:
    def test_generic_content_request(self, client) -> None:
        response = client.post(
            "/api/v1/content",
            json={"kind": "legal_card", "key": "New York", "language": "en"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "fallback"
        assert body["record"]["key"] == "new_york"
        assert body["record"]["title"] == "Legal Rights - NEW YORK"
        assert "not legal advice" in body["disclaimer"]

    def test_legal_card_endpoint(self, client) -> None:
        response = client.post("/api/v1/content/legal-card", json={"jurisdiction": "texas", "language": "es"})
        assert response.status_code == 200
        assert response.json()["record"]["language"] == "es"

    def test_script_endpoint(self, client) -> None:
        response = client.post(
            "/api/v1/content/script",
            json={"scenario": "traffic_stop", "is_premium": True},
        )
        assert response.status_code == 200
        payload = response.json()["record"]["payload"]
        assert payload["scenario"] == "traffic_stop"
        assert payload["is_premium_tier"] is True

    def test_unsupported_language_is_422(self, client) -> None:
        response = client.post("/api/v1/content/legal-card", json={"jurisdiction": "texas", "language": "fr"})
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_request"

    def test_emergency_kind_rejected(self, client) -> None:
        response = client.post("/api/v1/content", json={"kind": "emergency_message", "key": "x"})
        assert response.status_code == 422

    def test_recommend_scenario(self, client) -> None:
        response = client.post(
            "/api/v1/content/recommend-scenario",
            json={"description": "Officer knocked on my door at night"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["scenario"] == "general_interaction"
        assert body["source"] == "fallback"
        assert body["suggestions"]

    def test_recommend_scenario_blank_description(self, client) -> None:
        response = client.post("/api/v1/content/recommend-scenario", json={"description": ""})
        assert response.status_code == 422

    def test_no_engine_is_503(self, bare_client) -> None:
        response = bare_client.post("/api/v1/content/legal-card", json={"jurisdiction": "texas"})
        assert response.status_code == 503


# -----------------------------------------------------------------------
# Alerts
# -----------------------------------------------------------------------


class TestAlertEndpoint:
    def test_alert_sent(self, client, sms_sender) -> None:
        response = client.post(
            "/api/v1/alerts",
            json={
                "contacts": [{"id": "c1", "name": "Sam", "phone": _PHONE_A, "email": _EMAIL_A}],
                "location": _LOCATION,
                "user_info": {"name": "Alex"},
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["result"]["any_succeeded"] is True
        assert body["result"]["sent_count"] == 2
        assert body["contacts_reached"] == 1
        assert body["contact_outcomes"] == {"c1": True}
        assert "123 Main St" in sms_sender.calls[0][1]

    def test_no_contacts_is_400(self, client) -> None:
        response = client.post("/api/v1/alerts", json={"contacts": [], "location": _LOCATION})
        assert response.status_code == 400
        assert response.json()["error"] == "NoContacts"

    def test_no_reachable_channel_is_400(self, client) -> None:
        response = client.post(
            "/api/v1/alerts",
            json={"contacts": [{"id": "c1", "name": "Sam"}], "location": _LOCATION},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "NoChannelsAvailable"

    def test_all_channels_failed_is_502_with_audit_id(self, client, sms_sender, audit) -> None:
        sms_sender.failures = {_PHONE_A: "carrier rejected"}
        response = client.post(
            "/api/v1/alerts",
            json={"contacts": [{"id": "c1", "name": "Sam", "phone": _PHONE_A}], "location": _LOCATION},
        )
        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "all_channels_failed"
        assert body["audit_id"] == audit.entries()[0].entry_id
        assert body["result"]["any_succeeded"] is False

    def test_malformed_location_is_422(self, client) -> None:
        response = client.post(
            "/api/v1/alerts",
            json={
                "contacts": [{"id": "c1", "name": "Sam", "phone": _PHONE_A}],
                "location": {"latitude": 500, "longitude": 0},
            },
        )
        assert response.status_code == 422

    def test_no_engine_is_503(self, bare_client) -> None:
        response = bare_client.post("/api/v1/alerts", json={"contacts": [], "location": _LOCATION})
        assert response.status_code == 503


# -----------------------------------------------------------------------
# Health and info
# -----------------------------------------------------------------------


class TestHealth:
    def test_liveness(self, client) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness_with_engine(self, client) -> None:
        assert client.get("/api/v1/health/ready").json() == {"status": "ready", "checks": {"engine": "ok"}}

    def test_readiness_reports_unreachable_store(self, client) -> None:
        from src.main import app

        class RedisContentCache:
            ping = AsyncMock(return_value=False)

        app.state.stores = [RedisContentCache()]
        try:
            body = client.get("/api/v1/health/ready").json()
        finally:
            del app.state.stores
        assert body["status"] == "ready"
        assert body["checks"]["RedisContentCache"] == "unreachable"

    def test_readiness_without_engine(self, bare_client) -> None:
        assert bare_client.get("/api/v1/health/ready").json()["status"] == "degraded"

    def test_api_info(self, client) -> None:
        body = client.get("/api").json()
        assert body["languages_supported"] == ["en", "es"]
        assert body["endpoints"]["alerts"] == "/api/v1/alerts"
