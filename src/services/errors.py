"""Error taxonomy for content generation and emergency dispatch.

Generation-side errors (:class:`MalformedOutput`,
:class:`GenerationUnavailable`) are absorbed inside the content pipeline
and never reach a caller.  Dispatch-side errors are surfaced: the
precondition failures before anything is attempted, and
:class:`AllChannelsFailed` only after the audit entry has been written.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.models.dispatch import DispatchResult


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class InvalidRequest(EngineError):
    """Input failed validation; rejected before any I/O."""


class MalformedOutput(EngineError):
    """The generation call succeeded but its output could not be repaired."""


class GenerationUnavailable(EngineError):
    """The generation call failed: transport error, timeout, or empty output."""


class DispatchError(EngineError):
    """Base class for errors surfaced by the alert dispatcher."""


class NoContacts(DispatchError):
    """``dispatch`` was called with an empty contact list."""


class NoChannelsAvailable(DispatchError):
    """No contact has a phone number or an e-mail address."""


class AllChannelsFailed(DispatchError):
    """Every attempted channel failed.

    The dispatch result has already been persisted when this is raised;
    ``audit_id`` identifies the audit entry for follow-up.
    """

    def __init__(self, result: DispatchResult, audit_id: str) -> None:
        self.result = result
        self.audit_id = audit_id
        super().__init__(
            f"All {len(result.attempts)} alert attempts failed "
            f"(dispatch {result.dispatch_id}, audit {audit_id})"
        )
