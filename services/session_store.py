"""Exam session store — recoverable storage for in-progress exams.

An exam session is serialized to an ``ExamSessionSnapshot`` under a fixed
storage key after every change, so a reload (or a crashed worker) can pick
up the exact question, answers, flags and remaining time.  The snapshot is
removed once the attempt has been archived.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from pydantic import ValidationError

from models.session import ExamSessionSnapshot

logger = logging.getLogger(__name__)

EXAM_SESSION_STORAGE_KEY = "hamforge-exam-session"


# ── Abstract Interface ───────────────────────────────────────


class SessionStore(ABC):
    """Abstract session store — implement for different backends."""

    @abstractmethod
    async def get(self, key: str) -> ExamSessionSnapshot | None:
        """Retrieve a snapshot.  Returns None if missing, expired or unreadable."""
        ...

    @abstractmethod
    async def save(self, key: str, snapshot: ExamSessionSnapshot) -> None:
        """Persist a snapshot (create or update)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a snapshot."""
        ...

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove all expired snapshots.  Returns count removed."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemorySessionStore(SessionStore):
    """In-memory store with TTL expiration.

    Snapshots are kept as JSON so restoring always goes through the same
    deserialization path as the Redis backend.
    """

    def __init__(self, ttl_seconds: int = 6 * 60 * 60):
        self._store: dict[str, tuple[float, str]] = {}
        self._ttl = ttl_seconds

    def _is_expired(self, saved_at: float) -> bool:
        return (time.time() - saved_at) > self._ttl

    async def get(self, key: str) -> ExamSessionSnapshot | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        saved_at, data = entry
        if self._is_expired(saved_at):
            del self._store[key]
            logger.debug("Exam session expired: %s", key)
            return None
        try:
            return ExamSessionSnapshot.model_validate_json(data)
        except ValidationError:
            logger.warning("Failed to deserialize exam session: %s", key)
            return None

    async def save(self, key: str, snapshot: ExamSessionSnapshot) -> None:
        snapshot.updated_at = time.time()
        self._store[key] = (snapshot.updated_at, snapshot.model_dump_json(by_alias=True))

    async def save_raw(self, key: str, data: str) -> None:
        """Store pre-serialized data as-is."""
        self._store[key] = (time.time(), data)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def cleanup_expired(self) -> int:
        expired = [k for k, (saved_at, _) in self._store.items() if self._is_expired(saved_at)]
        for key in expired:
            del self._store[key]
        if expired:
            logger.info("Cleaned up %d expired exam sessions", len(expired))
        return len(expired)

    @property
    def size(self) -> int:
        """Number of snapshots currently stored (may include expired)."""
        return len(self._store)


# ── Redis Implementation ─────────────────────────────────────


class RedisSessionStore(SessionStore):
    """Redis-backed store with automatic TTL expiration.

    Supports multi-worker deployments.  Snapshots are serialized as JSON
    and stored with a Redis TTL matching ``session_ttl``.  Keys are used
    as given; callers already namespace them.
    """

    def __init__(self, redis_url: str, ttl_seconds: int = 6 * 60 * 60):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )
        self._ttl = ttl_seconds

    async def get(self, key: str) -> ExamSessionSnapshot | None:
        data = await self._redis.get(key)
        if data is None:
            return None
        try:
            return ExamSessionSnapshot.model_validate_json(data)
        except ValidationError:
            logger.warning("Failed to deserialize exam session: %s", key)
            return None

    async def save(self, key: str, snapshot: ExamSessionSnapshot) -> None:
        snapshot.updated_at = time.time()
        await self._redis.set(key, snapshot.model_dump_json(by_alias=True), ex=self._ttl)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def cleanup_expired(self) -> int:
        # Redis TTL handles expiration
        return 0

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self._redis.aclose()

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            return await self._redis.ping()
        except Exception:
            return False


# ── Module-level Singleton ───────────────────────────────────

_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get the singleton session store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        ttl = settings.session_ttl

        if settings.session_store_type == "redis" and settings.redis_url:
            _store = RedisSessionStore(redis_url=settings.redis_url, ttl_seconds=ttl)
            logger.info("Initialized RedisSessionStore (TTL=%ds)", ttl)
        else:
            _store = InMemorySessionStore(ttl_seconds=ttl)
            logger.info("Initialized InMemorySessionStore (TTL=%ds)", ttl)
    return _store


# ── Background Cleanup Task ──────────────────────────────────


async def periodic_cleanup(interval_seconds: int = 300) -> None:
    """Background task that periodically drops expired exam sessions.

    Started as an ``asyncio.Task`` in the FastAPI lifespan.
    """
    store = get_session_store()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await store.cleanup_expired()
        except Exception:
            logger.exception("Exam session cleanup failed")
