"""Question progress repository — persisted spaced-repetition records.

One ``QuestionProgress`` per question ever answered.  The abstract
interface has an in-memory implementation for single-process use and
tests, and a Redis implementation for persistence across restarts.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from models.progress import QuestionProgress

logger = logging.getLogger(__name__)


# ── Abstract Interface ───────────────────────────────────────


class ProgressRepository(ABC):
    """Abstract progress repository — implement for different backends."""

    @abstractmethod
    async def get(self, question_id: str) -> QuestionProgress | None:
        """Retrieve a record by question ID.  Returns None if never answered."""
        ...

    @abstractmethod
    async def put(self, progress: QuestionProgress) -> None:
        """Persist a record (create or update)."""
        ...

    @abstractmethod
    async def all(self) -> list[QuestionProgress]:
        """Every stored record."""
        ...

    @abstractmethod
    async def delete_many(self, question_ids: Iterable[str]) -> int:
        """Remove records for *question_ids*.  Returns count removed."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemoryProgressRepository(ProgressRepository):
    def __init__(self) -> None:
        self._store: dict[str, QuestionProgress] = {}

    async def get(self, question_id: str) -> QuestionProgress | None:
        progress = self._store.get(question_id)
        return progress.model_copy(deep=True) if progress else None

    async def put(self, progress: QuestionProgress) -> None:
        self._store[progress.question_id] = progress.model_copy(deep=True)

    async def all(self) -> list[QuestionProgress]:
        return [p.model_copy(deep=True) for p in self._store.values()]

    async def delete_many(self, question_ids: Iterable[str]) -> int:
        removed = 0
        for question_id in question_ids:
            if self._store.pop(question_id, None) is not None:
                removed += 1
        return removed

    async def clear(self) -> None:
        self._store.clear()

    @property
    def size(self) -> int:
        return len(self._store)


# ── Redis Implementation ─────────────────────────────────────


class RedisProgressRepository(ProgressRepository):
    """Redis hash keyed by question ID, values serialized as JSON."""

    _KEY = "hamforge:progress"

    def __init__(self, redis_url: str):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )

    async def get(self, question_id: str) -> QuestionProgress | None:
        data = await self._redis.hget(self._KEY, question_id)
        if data is None:
            return None
        return QuestionProgress.model_validate_json(data)

    async def put(self, progress: QuestionProgress) -> None:
        await self._redis.hset(
            self._KEY, progress.question_id, progress.model_dump_json(by_alias=True)
        )

    async def all(self) -> list[QuestionProgress]:
        raw = await self._redis.hgetall(self._KEY)
        records = []
        for question_id, data in raw.items():
            try:
                records.append(QuestionProgress.model_validate_json(data))
            except ValueError:
                logger.warning("Skipping unreadable progress record: %s", question_id)
        return records

    async def delete_many(self, question_ids: Iterable[str]) -> int:
        ids = list(question_ids)
        if not ids:
            return 0
        return await self._redis.hdel(self._KEY, *ids)

    async def clear(self) -> None:
        await self._redis.delete(self._KEY)

    async def close(self) -> None:
        await self._redis.aclose()


# ── Module-level Singleton ───────────────────────────────────

_repository: ProgressRepository | None = None


def get_progress_repository() -> ProgressRepository:
    """Get the singleton progress repository instance."""
    global _repository
    if _repository is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.storage_type == "redis" and settings.redis_url:
            _repository = RedisProgressRepository(settings.redis_url)
            logger.info("Initialized RedisProgressRepository")
        else:
            _repository = InMemoryProgressRepository()
            logger.info("Initialized InMemoryProgressRepository")
    return _repository
