"""KnowYourRights Now service layer: generation, caching, fallback, dispatch.

The Gemini client (``src.services.llm``) is not re-exported here so that
``import src.services`` does not pull in the Vertex AI SDK; import it
from its module where it is needed.
"""

from __future__ import annotations

from src.services.alert_dispatcher import AlertDispatcher
from src.services.audit import (
    AuditEntry,
    AuditEntryType,
    AuditSink,
    InMemoryAuditSink,
    RedisAuditSink,
)
from src.services.cache import (
    CachePolicy,
    ContentCache,
    InMemoryContentCache,
    RedisContentCache,
)
from src.services.channels import (
    ChannelSender,
    EmailSender,
    SendResult,
    SMSSender,
    build_senders,
    sanitize_phone,
)
from src.services.content_pipeline import ContentPipeline
from src.services.errors import (
    AllChannelsFailed,
    DispatchError,
    EngineError,
    GenerationUnavailable,
    InvalidRequest,
    MalformedOutput,
    NoChannelsAvailable,
    NoContacts,
)
from src.services.fallback_library import FallbackLibrary

__all__ = [
    "AlertDispatcher",
    "AllChannelsFailed",
    "AuditEntry",
    "AuditEntryType",
    "AuditSink",
    "CachePolicy",
    "ChannelSender",
    "ContentCache",
    "ContentPipeline",
    "DispatchError",
    "EmailSender",
    "EngineError",
    "FallbackLibrary",
    "GenerationUnavailable",
    "InMemoryAuditSink",
    "InMemoryContentCache",
    "InvalidRequest",
    "MalformedOutput",
    "NoChannelsAvailable",
    "NoContacts",
    "RedisAuditSink",
    "RedisContentCache",
    "SMSSender",
    "SendResult",
    "build_senders",
    "sanitize_phone",
]
