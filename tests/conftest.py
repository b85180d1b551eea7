"""Shared fixtures and test doubles for the engine test suite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from src.models.dispatch import EmergencyContact, Location, UserInfo
from src.models.enums import Channel
from src.services.alert_dispatcher import AlertDispatcher
from src.services.audit import InMemoryAuditSink
from src.services.cache import InMemoryContentCache
from src.services.channels import SendResult
from src.services.content_pipeline import ContentPipeline
from src.services.fallback_library import FallbackLibrary
from src.services.llm import StaticGenerationClient


@dataclass
class ScriptedSender:
    """Channel sender whose outcome is scripted per address.

    ``failures`` maps an address to the failure reason; ``delays`` maps
    an address to seconds to sleep before answering; ``errors`` maps an
    address to an exception to raise.  Unlisted addresses succeed.
    """

    channel: Channel
    failures: dict[str, str] = field(default_factory=dict)
    delays: dict[str, float] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)
    calls: list[tuple[str, str, str | None]] = field(default_factory=list)

    async def send(self, address: str, body: str, *, subject: str | None = None) -> SendResult:
        self.calls.append((address, body, subject))
        if address in self.delays:
            await asyncio.sleep(self.delays[address])
        if address in self.errors:
            raise self.errors[address]
        if address in self.failures:
            return SendResult.failed(self.failures[address], provider="scripted")
        return SendResult.sent("scripted", f"msg-{len(self.calls)}")


@pytest.fixture
def location() -> Location:
    return Location(latitude=34.05223, longitude=-118.24368, address="123 Main St, Los Angeles, CA")


@pytest.fixture
def user_info() -> UserInfo:
    return UserInfo(name="Alex Rivera", phone="+13105550100")


@pytest.fixture
def cache() -> InMemoryContentCache:
    return InMemoryContentCache()


@pytest.fixture
def audit() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def failing_client() -> StaticGenerationClient:
    """A generation client whose every call is unavailable."""
    return StaticGenerationClient(error=RuntimeError("upstream unavailable"))


@pytest.fixture
def pipeline(
    failing_client: StaticGenerationClient,
    cache: InMemoryContentCache,
    audit: InMemoryAuditSink,
) -> ContentPipeline:
    return ContentPipeline(failing_client, cache, FallbackLibrary(), audit)


@pytest.fixture
def sms_sender() -> ScriptedSender:
    return ScriptedSender(channel=Channel.SMS)


@pytest.fixture
def email_sender() -> ScriptedSender:
    return ScriptedSender(channel=Channel.EMAIL)


@pytest.fixture
def dispatcher(
    pipeline: ContentPipeline,
    sms_sender: ScriptedSender,
    email_sender: ScriptedSender,
    audit: InMemoryAuditSink,
) -> AlertDispatcher:
    return AlertDispatcher(
        pipeline,
        {Channel.SMS: sms_sender, Channel.EMAIL: email_sender},
        audit,
        channel_timeout_seconds=1.0,
        dispatch_timeout_seconds=2.0,
    )


def _make_contact(
    contact_id: str,
    phone: str | None = None,
    email: str | None = None,
    *,
    is_primary: bool = False,
) -> EmergencyContact:
    return EmergencyContact(
        id=contact_id,
        name=f"Contact {contact_id}",
        phone=phone,
        email=email,
        is_primary=is_primary,
    )


@pytest.fixture
def make_contact():
    """Factory building an :class:`EmergencyContact` from id, phone and email."""
    return _make_contact
