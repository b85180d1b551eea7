"""Channel senders for emergency alerts: SMS and e-mail.

Each sender exposes the same contract::

    result = await sender.send(address, body, subject=...)

and reports its outcome as a :class:`SendResult` rather than raising:
invalid addresses and provider errors are local to a channel and come
back as ``failed(reason)``.  Cancellation is *not* swallowed, so the
alert dispatcher can still bound each send with a timeout.

Provider integrations:

* **SMS**: Twilio Messages API, or a mock provider that only logs.
* **E-mail**: SendGrid v3 ``mail/send``, or a mock provider.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Final, Protocol, runtime_checkable
from uuid import uuid4

import httpx
import structlog

from src.models.enums import AttemptOutcome, Channel

logger = structlog.get_logger(__name__)

_PHONE_STRIP_RE: Final[re.Pattern[str]] = re.compile(r"[\s\-\(\)\.]+")
_E164_RE: Final[re.Pattern[str]] = re.compile(r"^\+[1-9]\d{7,14}$")
_EMAIL_RE: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_TWILIO_BASE_URL: Final[str] = "https://api.twilio.com/2010-04-01"
_SENDGRID_URL: Final[str] = "https://api.sendgrid.com/v3/mail/send"


# ---------------------------------------------------------------------------
# Address utilities
# ---------------------------------------------------------------------------


def sanitize_phone(number: str) -> str:
    """Normalise a phone number to E.164 format.

    Spaces, dashes, dots and parentheses are stripped first.  A plain
    10-digit number is treated as North American and gets ``+1``; an
    11-digit number starting with ``1`` gets ``+``.

    Raises
    ------
    ValueError
        If the number cannot be expressed in E.164.
    """
    cleaned = _PHONE_STRIP_RE.sub("", number.strip())
    if not cleaned.startswith("+"):
        if len(cleaned) == 10 and cleaned.isdigit():
            cleaned = f"+1{cleaned}"
        elif len(cleaned) == 11 and cleaned.isdigit() and cleaned.startswith("1"):
            cleaned = f"+{cleaned}"
        else:
            cleaned = f"+{cleaned}"
    if not _E164_RE.match(cleaned):
        raise ValueError(f"Invalid phone number: {number!r}. Expected E.164 or a 10-digit US number.")
    return cleaned


def validate_email(address: str) -> str:
    """Return *address* stripped, or raise :class:`ValueError` if malformed."""
    cleaned = address.strip()
    if not _EMAIL_RE.match(cleaned):
        raise ValueError(f"Invalid email address: {address!r}")
    return cleaned


def mask_phone(number: str) -> str:
    """Mask all but the country prefix and last four digits (``+1******4567``)."""
    if len(number) <= 6:
        return "*" * len(number)
    return f"{number[:2]}{'*' * (len(number) - 6)}{number[-4:]}"


def mask_email(address: str) -> str:
    """Mask the local part of an address (``j***@example.com``)."""
    local, sep, domain = address.partition("@")
    if not sep:
        return mask_phone(address)
    return f"{local[:1]}***@{domain}"


# ---------------------------------------------------------------------------
# Send contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SendResult:
    """Outcome of one send call on one channel."""

    outcome: AttemptOutcome
    provider: str = ""
    provider_message_id: str | None = None
    error: str | None = None

    @classmethod
    def sent(cls, provider: str, message_id: str | None = None) -> SendResult:
        return cls(outcome=AttemptOutcome.SENT, provider=provider, provider_message_id=message_id)

    @classmethod
    def failed(cls, reason: str, provider: str = "") -> SendResult:
        return cls(outcome=AttemptOutcome.FAILED, provider=provider, error=reason)

    @property
    def ok(self) -> bool:
        return self.outcome == AttemptOutcome.SENT


@runtime_checkable
class ChannelSender(Protocol):
    """Uniform delivery contract consumed by the alert dispatcher."""

    channel: Channel

    async def send(self, address: str, body: str, *, subject: str | None = None) -> SendResult: ...


# ---------------------------------------------------------------------------
# SMS providers
# ---------------------------------------------------------------------------


class TwilioSMSProvider:
    """Twilio Programmable Messaging via its REST API."""

    name: Final[str] = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not (account_sid and auth_token and from_number):
            raise ValueError("Twilio requires account_sid, auth_token and from_number.")
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._timeout_seconds = timeout_seconds

    async def send(self, to: str, body: str) -> dict[str, Any]:
        url = f"{_TWILIO_BASE_URL}/Accounts/{self._account_sid}/Messages.json"
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            response = await client.post(
                url,
                data={"To": to, "From": self._from_number, "Body": body},
                auth=(self._account_sid, self._auth_token),
            )
            response.raise_for_status()
            data = response.json()
        return {"message_id": data.get("sid", ""), "status": data.get("status", "queued")}


@dataclass(slots=True)
class MockSMSProvider:
    """SMS provider for local development: logs and records instead of sending."""

    name: str = "mock"
    sent: list[tuple[str, str]] = field(default_factory=list)

    async def send(self, to: str, body: str) -> dict[str, Any]:
        self.sent.append((to, body))
        logger.info(
            "mock_sms.sent",
            to=mask_phone(to),
            message_preview=body[:80],
            length=len(body),
        )
        return {"message_id": f"mock_{uuid4().hex[:12]}", "status": "mock"}


# ---------------------------------------------------------------------------
# E-mail providers
# ---------------------------------------------------------------------------


class SendGridEmailProvider:
    """SendGrid v3 ``mail/send`` integration."""

    name: Final[str] = "sendgrid"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not api_key:
            raise ValueError("SendGrid requires an api_key.")
        self._api_key = api_key
        self._from_address = from_address
        self._timeout_seconds = timeout_seconds

    async def send(self, to: str, subject: str, body: str) -> dict[str, Any]:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._from_address},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": body},
                {"type": "text/html", "value": body.replace("\n", "<br>")},
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            response = await client.post(_SENDGRID_URL, json=payload, headers=headers)
            response.raise_for_status()
        return {"message_id": response.headers.get("x-message-id", ""), "status": "sent"}


@dataclass(slots=True)
class MockEmailProvider:
    """E-mail provider for local development: logs and records instead of sending."""

    name: str = "mock"
    sent: list[tuple[str, str, str]] = field(default_factory=list)

    async def send(self, to: str, subject: str, body: str) -> dict[str, Any]:
        self.sent.append((to, subject, body))
        logger.info(
            "mock_email.sent",
            to=mask_email(to),
            subject=subject,
            length=len(body),
        )
        return {"message_id": f"mock_{uuid4().hex[:12]}", "status": "mock"}


# ---------------------------------------------------------------------------
# Senders
# ---------------------------------------------------------------------------


class SMSSender:
    """:class:`ChannelSender` for SMS; ``subject`` is ignored."""

    channel: Final[Channel] = Channel.SMS

    __slots__ = ("_provider",)

    def __init__(self, provider: TwilioSMSProvider | MockSMSProvider) -> None:
        self._provider = provider

    async def send(self, address: str, body: str, *, subject: str | None = None) -> SendResult:
        try:
            phone = sanitize_phone(address)
        except ValueError as exc:
            return SendResult.failed(str(exc), provider=self._provider.name)

        log = logger.bind(channel="sms", to=mask_phone(phone), provider=self._provider.name)
        start = time.perf_counter()
        try:
            result = await self._provider.send(phone, body)
        except httpx.HTTPStatusError as exc:
            log.error("sms.send_failed", status=exc.response.status_code)
            return SendResult.failed(f"provider returned HTTP {exc.response.status_code}", self._provider.name)
        except Exception as exc:
            log.error("sms.send_failed", error=str(exc), exc_info=True)
            return SendResult.failed(str(exc) or type(exc).__name__, self._provider.name)

        log.info(
            "sms.sent",
            provider_id=result.get("message_id", ""),
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return SendResult.sent(self._provider.name, str(result.get("message_id", "")) or None)


class EmailSender:
    """:class:`ChannelSender` for e-mail."""

    channel: Final[Channel] = Channel.EMAIL

    __slots__ = ("_provider",)

    def __init__(self, provider: SendGridEmailProvider | MockEmailProvider) -> None:
        self._provider = provider

    async def send(self, address: str, body: str, *, subject: str | None = None) -> SendResult:
        try:
            email = validate_email(address)
        except ValueError as exc:
            return SendResult.failed(str(exc), provider=self._provider.name)

        log = logger.bind(channel="email", to=mask_email(email), provider=self._provider.name)
        start = time.perf_counter()
        try:
            result = await self._provider.send(email, subject or "", body)
        except httpx.HTTPStatusError as exc:
            log.error("email.send_failed", status=exc.response.status_code)
            return SendResult.failed(f"provider returned HTTP {exc.response.status_code}", self._provider.name)
        except Exception as exc:
            log.error("email.send_failed", error=str(exc), exc_info=True)
            return SendResult.failed(str(exc) or type(exc).__name__, self._provider.name)

        log.info(
            "email.sent",
            provider_id=result.get("message_id", ""),
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return SendResult.sent(self._provider.name, str(result.get("message_id", "")) or None)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_SMS_PROVIDER_NAMES: Final[frozenset[str]] = frozenset({"twilio", "mock"})
_EMAIL_PROVIDER_NAMES: Final[frozenset[str]] = frozenset({"sendgrid", "mock"})


def build_senders(
    *,
    sms_provider: str = "mock",
    email_provider: str = "mock",
    twilio_account_sid: str = "",
    twilio_auth_token: str = "",
    twilio_from_number: str = "",
    sendgrid_api_key: str = "",
    email_from_address: str = "noreply@knowyourrights.app",
    timeout_seconds: float = 10.0,
) -> dict[Channel, ChannelSender]:
    """Build one sender per channel from provider names and credentials.

    Raises
    ------
    ValueError
        For an unknown provider name or missing credentials.
    """
    if sms_provider not in _SMS_PROVIDER_NAMES:
        raise ValueError(
            f"Unknown SMS provider {sms_provider!r}. Supported: {', '.join(sorted(_SMS_PROVIDER_NAMES))}."
        )
    if email_provider not in _EMAIL_PROVIDER_NAMES:
        raise ValueError(
            f"Unknown email provider {email_provider!r}. "
            f"Supported: {', '.join(sorted(_EMAIL_PROVIDER_NAMES))}."
        )

    sms: TwilioSMSProvider | MockSMSProvider
    if sms_provider == "twilio":
        sms = TwilioSMSProvider(
            twilio_account_sid,
            twilio_auth_token,
            twilio_from_number,
            timeout_seconds=timeout_seconds,
        )
    else:
        sms = MockSMSProvider()

    email: SendGridEmailProvider | MockEmailProvider
    if email_provider == "sendgrid":
        email = SendGridEmailProvider(
            sendgrid_api_key,
            email_from_address,
            timeout_seconds=timeout_seconds,
        )
    else:
        email = MockEmailProvider()

    logger.info("channels.initialised", sms_provider=sms_provider, email_provider=email_provider)
    return {Channel.SMS: SMSSender(sms), Channel.EMAIL: EmailSender(email)}
