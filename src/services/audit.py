"""Append-only audit trail for dispatch results and generated content.

Every :class:`~src.models.dispatch.DispatchResult` and every freshly
generated :class:`~src.models.content.ContentRecord` is written here
through a single ``append`` call.  Entries are immutable and carry a
SHA-256 checksum over their payload so later reporting and compliance
tooling can detect tampering.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final, Protocol, runtime_checkable
from uuid import uuid4

import orjson
import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = structlog.get_logger(__name__)

_AUDIT_LIST_KEY: Final[str] = "kyr:audit"


class AuditEntryType(StrEnum):
    __slots__ = ()

    DISPATCH_RESULT = "dispatch_result"
    CONTENT_GENERATED = "content_generated"


class AuditEntry(BaseModel):
    """A single immutable audit trail record."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: uuid4().hex)
    entry_type: AuditEntryType
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: dict[str, Any]
    checksum: str = ""

    @model_validator(mode="after")
    def _fill_checksum(self) -> AuditEntry:
        if not self.checksum:
            object.__setattr__(self, "checksum", self.compute_checksum())
        return self

    def compute_checksum(self) -> str:
        """Compute SHA-256 checksum of this entry for tamper detection."""
        content = orjson.dumps(
            {
                "entry_id": self.entry_id,
                "entry_type": self.entry_type.value,
                "recorded_at": self.recorded_at.isoformat(),
                "payload": self.payload,
            },
            option=orjson.OPT_SORT_KEYS,
        )
        return hashlib.sha256(content).hexdigest()

    @property
    def is_intact(self) -> bool:
        return self.checksum == self.compute_checksum()

    @classmethod
    def for_model(cls, entry_type: AuditEntryType, model: BaseModel) -> AuditEntry:
        return cls(entry_type=entry_type, payload=model.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Sink contract
# ---------------------------------------------------------------------------


@runtime_checkable
class AuditSink(Protocol):
    """Append-only persistence for audit entries."""

    async def append(self, entry: AuditEntry) -> str: ...


# ---------------------------------------------------------------------------
# In-memory sink
# ---------------------------------------------------------------------------


class InMemoryAuditSink:
    """Process-local :class:`AuditSink` for development and tests."""

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditEntry) -> str:
        async with self._lock:
            self._entries.append(entry)
        logger.debug("audit.appended", entry_id=entry.entry_id, entry_type=entry.entry_type.value)
        return entry.entry_id

    def entries(self, entry_type: AuditEntryType | None = None) -> list[AuditEntry]:
        """Return a copy of the trail, optionally filtered by type, oldest first."""
        if entry_type is None:
            return list(self._entries)
        return [e for e in self._entries if e.entry_type == entry_type]

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Redis sink
# ---------------------------------------------------------------------------


class RedisAuditSink:
    """Redis-backed :class:`AuditSink`: one ``RPUSH`` per entry."""

    __slots__ = ("_pool", "_redis")

    def __init__(self, url: str = "redis://localhost:6379/0", *, max_connections: int = 10) -> None:
        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    async def append(self, entry: AuditEntry) -> str:
        await self._redis.rpush(_AUDIT_LIST_KEY, orjson.dumps(entry.model_dump(mode="json")))
        logger.debug("audit.appended", entry_id=entry.entry_id, entry_type=entry.entry_type.value)
        return entry.entry_id

    async def recent(self, limit: int = 100) -> list[AuditEntry]:
        """Return up to *limit* most recent entries, newest first."""
        raw_entries = await self._redis.lrange(_AUDIT_LIST_KEY, -limit, -1)
        return [AuditEntry.model_validate(orjson.loads(raw)) for raw in reversed(raw_entries)]

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await self._redis.aclose()
            await self._pool.aclose()
