"""Versioned content cache with Redis and in-memory backends.

Records are keyed by ``(kind, key, language)`` and form an append-only
version sequence: a refresh writes a new version, existing versions are
never overwritten, and ``get_latest`` always returns the highest version.

Concurrent generations for the same key may both miss the cache and
both write.  No cross-process lock serialises them; instead each write
claims the next free version number, so the sequence stays consistent
and the last writer simply ends up on top.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Final, Protocol, runtime_checkable

import orjson
import structlog

from src.models.content import ContentRecord
from src.models.enums import ContentKind, Language

logger = structlog.get_logger(__name__)

_KEY_PREFIX: Final[str] = "kyr:content"

# Bound on re-numbering attempts when a version number is taken by a
# concurrent writer between ``next_version`` and ``put``.
_MAX_PUT_ATTEMPTS: Final[int] = 5


# ---------------------------------------------------------------------------
# Cache contract and policy
# ---------------------------------------------------------------------------


@runtime_checkable
class ContentCache(Protocol):
    """Async versioned store of :class:`ContentRecord` objects."""

    async def get_latest(
        self, kind: ContentKind, key: str, language: Language
    ) -> ContentRecord | None: ...

    async def next_version(self, kind: ContentKind, key: str, language: Language) -> int: ...

    async def put(self, record: ContentRecord) -> ContentRecord: ...


@dataclass(frozen=True, slots=True)
class CachePolicy:
    """Rules deciding whether a cache hit may be served.

    ``allow_unverified`` -- serve records that have not passed human
    review.  When ``False`` an unverified hit is treated as a miss and
    fresh content is generated instead.
    """

    allow_unverified: bool = True

    def accepts(self, record: ContentRecord) -> bool:
        return record.verified or self.allow_unverified


def _slot(kind: ContentKind, key: str, language: Language) -> str:
    return f"{kind.value}:{key}:{language.value}"


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryContentCache:
    """Process-local :class:`ContentCache` for development and tests.

    Guarded by an :class:`asyncio.Lock` (sufficient for single-process
    async workloads).  Versions for each slot are kept sorted ascending.
    """

    __slots__ = ("_data", "_lock")

    def __init__(self) -> None:
        self._data: dict[str, list[ContentRecord]] = {}
        self._lock = asyncio.Lock()

    async def get_latest(
        self, kind: ContentKind, key: str, language: Language
    ) -> ContentRecord | None:
        async with self._lock:
            versions = self._data.get(_slot(kind, key, language))
            return versions[-1] if versions else None

    async def next_version(self, kind: ContentKind, key: str, language: Language) -> int:
        async with self._lock:
            versions = self._data.get(_slot(kind, key, language))
            return versions[-1].version + 1 if versions else 1

    async def put(self, record: ContentRecord) -> ContentRecord:
        async with self._lock:
            versions = self._data.setdefault(_slot(record.kind, record.key, record.language), [])
            top = versions[-1].version if versions else 0
            if record.version <= top:
                record = record.with_version(top + 1)
            versions.append(record)
            return record

    def versions(self, kind: ContentKind, key: str, language: Language) -> list[int]:
        """Return every stored version number for a slot, ascending."""
        return [r.version for r in self._data.get(_slot(kind, key, language), [])]

    @property
    def size(self) -> int:
        """Total number of stored records across all slots."""
        return sum(len(v) for v in self._data.values())


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisContentCache:
    """Redis-backed :class:`ContentCache` using ``redis.asyncio``.

    Layout per slot:

    * ``kyr:content:{kind}:{key}:{lang}:versions`` -- sorted set of
      version numbers (score == version).
    * ``kyr:content:{kind}:{key}:{lang}:v{n}`` -- orjson-encoded record,
      written with ``SET NX`` so an existing version is never replaced.
    """

    __slots__ = ("_pool", "_redis")

    def __init__(self, url: str = "redis://localhost:6379/0", *, max_connections: int = 20) -> None:
        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    @staticmethod
    def _versions_key(kind: ContentKind, key: str, language: Language) -> str:
        return f"{_KEY_PREFIX}:{_slot(kind, key, language)}:versions"

    @staticmethod
    def _record_key(kind: ContentKind, key: str, language: Language, version: int) -> str:
        return f"{_KEY_PREFIX}:{_slot(kind, key, language)}:v{version}"

    async def _top_version(self, kind: ContentKind, key: str, language: Language) -> int:
        top = await self._redis.zrevrange(self._versions_key(kind, key, language), 0, 0, withscores=True)
        return int(top[0][1]) if top else 0

    # -- ContentCache interface ------------------------------------------------

    async def get_latest(
        self, kind: ContentKind, key: str, language: Language
    ) -> ContentRecord | None:
        version = await self._top_version(kind, key, language)
        if version == 0:
            return None
        raw = await self._redis.get(self._record_key(kind, key, language, version))
        if raw is None:
            return None
        try:
            return ContentRecord.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValueError):
            logger.warning(
                "content_cache.corrupt_record",
                kind=kind.value,
                key=key,
                language=language.value,
                version=version,
            )
            return None

    async def next_version(self, kind: ContentKind, key: str, language: Language) -> int:
        return await self._top_version(kind, key, language) + 1

    async def put(self, record: ContentRecord) -> ContentRecord:
        versions_key = self._versions_key(record.kind, record.key, record.language)
        for _ in range(_MAX_PUT_ATTEMPTS):
            record_key = self._record_key(record.kind, record.key, record.language, record.version)
            raw = orjson.dumps(record.model_dump(mode="json"))
            if await self._redis.set(record_key, raw, nx=True):
                await self._redis.zadd(versions_key, {str(record.version): record.version})
                return record
            logger.info(
                "content_cache.version_taken",
                kind=record.kind.value,
                key=record.key,
                version=record.version,
            )
            top = await self._top_version(record.kind, record.key, record.language)
            record = record.with_version(max(top, record.version) + 1)
        msg = f"could not claim a free version for {record.kind}:{record.key}:{record.language}"
        raise RuntimeError(msg)

    # -- Lifecycle -------------------------------------------------------------

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await self._redis.aclose()
            await self._pool.aclose()

    async def ping(self) -> bool:
        """Return *True* if the Redis server is reachable."""
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False
