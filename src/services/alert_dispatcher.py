"""Emergency alert fan-out across contacts and channels.

One :meth:`AlertDispatcher.dispatch` call:

1. Rejects an empty contact list (:class:`NoContacts`) or contacts with
   no reachable address (:class:`NoChannelsAvailable`) before any I/O.
2. Obtains the alert text from the content pipeline.  The pipeline
   degrades to the static template, so message production never blocks
   the alert.
3. Starts one task per ``(contact, channel)`` attempt: SMS when a phone
   is present, e-mail when an address is present.  Attempts run
   concurrently and independently; each is bounded by the channel
   timeout and the whole fan-out by the dispatch timeout.  Attempts
   still running at the deadline are cancelled and recorded
   ``failed("timeout")``.
4. Aggregates the outcomes.  One ``sent`` attempt is enough for the
   alert to succeed.
5. Writes the :class:`DispatchResult` to the audit sink in every case,
   and only then raises :class:`AllChannelsFailed` if nothing was sent.

No attempt is retried and no task outlives the call.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, NamedTuple
from uuid import uuid4

import structlog

from src.models.content import EmergencyMessagePayload
from src.models.dispatch import DispatchAttempt, DispatchResult
from src.models.enums import AttemptOutcome, Channel, Language
from src.services.audit import AuditEntry, AuditEntryType
from src.services.channels import SendResult, mask_email, mask_phone
from src.services.errors import AllChannelsFailed, NoChannelsAvailable, NoContacts

if TYPE_CHECKING:
    from src.models.dispatch import EmergencyContact, Location, UserInfo
    from src.services.audit import AuditSink
    from src.services.channels import ChannelSender
    from src.services.content_pipeline import ContentPipeline

logger = structlog.get_logger(__name__)

TIMEOUT_REASON = "timeout"


class _PlannedAttempt(NamedTuple):
    contact_id: str
    channel: Channel
    address: str

    @property
    def masked_address(self) -> str:
        if self.channel == Channel.SMS:
            return mask_phone(self.address)
        return mask_email(self.address)


class AlertDispatcher:
    """Fan an emergency message out to every contact over every channel.

    Parameters
    ----------
    pipeline:
        Content pipeline used to produce the alert text.
    senders:
        One :class:`~src.services.channels.ChannelSender` per channel.
        A channel without a sender is never attempted.
    audit:
        Sink receiving one ``dispatch_result`` entry per call.  A failed
        audit write propagates to the caller.
    channel_timeout_seconds:
        Upper bound on a single send.
    dispatch_timeout_seconds:
        Upper bound on the whole fan-out.
    """

    __slots__ = ("_audit", "_channel_timeout", "_dispatch_timeout", "_pipeline", "_senders")

    def __init__(
        self,
        pipeline: ContentPipeline,
        senders: Mapping[Channel, ChannelSender],
        audit: AuditSink,
        *,
        channel_timeout_seconds: float = 10.0,
        dispatch_timeout_seconds: float = 20.0,
    ) -> None:
        self._pipeline = pipeline
        self._senders = dict(senders)
        self._audit = audit
        self._channel_timeout = channel_timeout_seconds
        self._dispatch_timeout = dispatch_timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        contacts: Sequence[EmergencyContact],
        location: Location,
        user_info: UserInfo,
        language: Language = Language.EN,
    ) -> DispatchResult:
        """Send the alert and return the persisted result.

        Raises
        ------
        NoContacts
            If *contacts* is empty.  Nothing is sent or written.
        NoChannelsAvailable
            If no contact has an address for a configured channel.
            Nothing is sent or written.
        AllChannelsFailed
            If every attempt failed.  The result has been audited.
        """
        if not contacts:
            raise NoContacts("at least one emergency contact is required")

        plan = self._plan(contacts)
        if not plan:
            raise NoChannelsAvailable(
                f"none of the {len(contacts)} contacts has a phone number or email address"
            )

        dispatch_id = uuid4().hex
        log = logger.bind(dispatch_id=dispatch_id, language=language.value)
        log.info("alert_dispatcher.start", contacts=len(contacts), attempts=len(plan))

        message = await self._pipeline.generate_emergency_message(
            location, user_info, language, alert_id=dispatch_id
        )
        payload = EmergencyMessagePayload.model_validate(message.record.payload)

        attempts = await self._fan_out(plan, payload, log)

        result = DispatchResult.from_attempts(
            attempts,
            dispatch_id=dispatch_id,
            language=language,
            message_source=message.source,
            message_record_id=message.record.id,
            contact_count=len(contacts),
            location=location,
        )
        audit_id = await self._audit.append(AuditEntry.for_model(AuditEntryType.DISPATCH_RESULT, result))

        log.info(
            "alert_dispatcher.complete",
            sent=result.sent_count,
            failed=result.failed_count,
            contacts_reached=result.contacts_reached,
            message_source=message.source.value,
            audit_id=audit_id,
        )

        if not result.any_succeeded:
            log.error("alert_dispatcher.all_channels_failed", audit_id=audit_id)
            raise AllChannelsFailed(result, audit_id)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _plan(self, contacts: Sequence[EmergencyContact]) -> list[_PlannedAttempt]:
        """List attempts in contact order, SMS before e-mail."""
        plan: list[_PlannedAttempt] = []
        for contact in contacts:
            if contact.phone and Channel.SMS in self._senders:
                plan.append(_PlannedAttempt(contact.id, Channel.SMS, contact.phone))
            if contact.email and Channel.EMAIL in self._senders:
                plan.append(_PlannedAttempt(contact.id, Channel.EMAIL, contact.email))
        return plan

    async def _fan_out(
        self,
        plan: list[_PlannedAttempt],
        payload: EmergencyMessagePayload,
        log: structlog.stdlib.BoundLogger,
    ) -> list[DispatchAttempt]:
        tasks = [
            asyncio.create_task(
                self._attempt(planned, payload, log),
                name=f"alert-{planned.channel.value}-{planned.contact_id}",
            )
            for planned in plan
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=self._dispatch_timeout)
        finally:
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        if pending:
            log.warning("alert_dispatcher.deadline_exceeded", unsettled=len(pending))

        attempts: list[DispatchAttempt] = []
        for planned, task in zip(plan, tasks, strict=True):
            if task in pending or task.cancelled():
                attempts.append(
                    DispatchAttempt(
                        contact_id=planned.contact_id,
                        channel=planned.channel,
                        address=planned.masked_address,
                        outcome=AttemptOutcome.FAILED,
                        error_detail=TIMEOUT_REASON,
                        elapsed_ms=round(self._dispatch_timeout * 1000, 2),
                    )
                )
            else:
                attempts.append(task.result())
        return attempts

    async def _attempt(
        self,
        planned: _PlannedAttempt,
        payload: EmergencyMessagePayload,
        log: structlog.stdlib.BoundLogger,
    ) -> DispatchAttempt:
        sender = self._senders[planned.channel]
        subject = payload.subject if planned.channel == Channel.EMAIL else None
        start = time.perf_counter()
        try:
            async with asyncio.timeout(self._channel_timeout):
                result = await sender.send(planned.address, payload.text, subject=subject)
        except TimeoutError:
            result = SendResult.failed(TIMEOUT_REASON)
        except Exception as exc:
            log.error(
                "alert_dispatcher.sender_error",
                channel=planned.channel.value,
                contact_id=planned.contact_id,
                exc_info=True,
            )
            result = SendResult.failed(str(exc) or type(exc).__name__)

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        if not result.ok:
            log.warning(
                "alert_dispatcher.attempt_failed",
                channel=planned.channel.value,
                contact_id=planned.contact_id,
                to=planned.masked_address,
                error=result.error,
            )
        return DispatchAttempt(
            contact_id=planned.contact_id,
            channel=planned.channel,
            address=planned.masked_address,
            outcome=result.outcome,
            error_detail=result.error,
            elapsed_ms=elapsed_ms,
        )
