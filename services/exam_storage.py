"""Exam archive — completed exam attempts and history statistics."""

from __future__ import annotations

import logging
import random
import string
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from errors import ArchiveError
from models.exam import ExamAnswer, ExamAttempt, ExamStats
from models.question import ExamLevel
from services.spaced_repetition import round_half_up

logger = logging.getLogger(__name__)

TREND_WINDOW = 5
TREND_MIN_ATTEMPTS = 3
TREND_THRESHOLD = 5

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_attempt_id() -> str:
    """``exam-<epoch ms>-<9 char base36 suffix>``."""
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"exam-{int(time.time() * 1000)}-{suffix}"


# ── Abstract Interface ───────────────────────────────────────


class ExamAttemptStore(ABC):
    """Abstract attempt archive — implement for different backends."""

    @abstractmethod
    async def add_attempt(self, attempt: ExamAttempt) -> None:
        """Store a fully-built attempt (used by import)."""
        ...

    @abstractmethod
    async def get_exam_attempt(self, attempt_id: str) -> ExamAttempt | None:
        ...

    @abstractmethod
    async def all_attempts(self) -> list[ExamAttempt]:
        ...

    @abstractmethod
    async def delete_exam_attempt(self, attempt_id: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every attempt for every level."""
        ...

    async def save_exam_attempt(
        self,
        exam_level: ExamLevel | str,
        score: int,
        passed: bool,
        time_spent: int,
        answers: Iterable[ExamAnswer],
    ) -> str:
        """Archive a completed exam and return its new ID.

        Raises:
            ArchiveError: the backend write failed.
        """
        attempt = ExamAttempt(
            id=generate_attempt_id(),
            exam_level=ExamLevel(exam_level),
            date=datetime.now(),
            score=score,
            passed=passed,
            time_spent=time_spent,
            answers=list(answers),
        )
        try:
            await self.add_attempt(attempt)
        except Exception as exc:
            raise ArchiveError(f"Failed to archive exam attempt: {exc}") from exc
        logger.info(
            "Archived exam attempt %s (%s, score=%d, passed=%s)",
            attempt.id,
            attempt.exam_level.value,
            score,
            passed,
        )
        return attempt.id

    async def get_exam_history(
        self, exam_level: ExamLevel | str, limit: int | None = None
    ) -> list[ExamAttempt]:
        """Attempts for *exam_level*, most recent first."""
        level = ExamLevel(exam_level)
        attempts = [a for a in await self.all_attempts() if a.exam_level is level]
        attempts.sort(key=lambda a: a.date, reverse=True)
        return attempts[:limit] if limit else attempts

    async def clear_exam_history(self, exam_level: ExamLevel | str) -> int:
        level = ExamLevel(exam_level)
        doomed = [a.id for a in await self.all_attempts() if a.exam_level is level]
        for attempt_id in doomed:
            await self.delete_exam_attempt(attempt_id)
        return len(doomed)


# ── In-Memory Implementation ────────────────────────────────


class InMemoryExamAttemptStore(ExamAttemptStore):
    def __init__(self) -> None:
        self._attempts: dict[str, ExamAttempt] = {}

    async def add_attempt(self, attempt: ExamAttempt) -> None:
        self._attempts[attempt.id] = attempt.model_copy(deep=True)

    async def get_exam_attempt(self, attempt_id: str) -> ExamAttempt | None:
        attempt = self._attempts.get(attempt_id)
        return attempt.model_copy(deep=True) if attempt else None

    async def all_attempts(self) -> list[ExamAttempt]:
        return [a.model_copy(deep=True) for a in self._attempts.values()]

    async def delete_exam_attempt(self, attempt_id: str) -> None:
        self._attempts.pop(attempt_id, None)

    async def clear(self) -> None:
        self._attempts.clear()


# ── Redis Implementation ─────────────────────────────────────


class RedisExamAttemptStore(ExamAttemptStore):
    """Redis hash keyed by attempt ID, values serialized as JSON."""

    _KEY = "hamforge:exam-attempts"

    def __init__(self, redis_url: str):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )

    async def add_attempt(self, attempt: ExamAttempt) -> None:
        await self._redis.hset(self._KEY, attempt.id, attempt.model_dump_json(by_alias=True))

    async def get_exam_attempt(self, attempt_id: str) -> ExamAttempt | None:
        data = await self._redis.hget(self._KEY, attempt_id)
        if data is None:
            return None
        return ExamAttempt.model_validate_json(data)

    async def all_attempts(self) -> list[ExamAttempt]:
        raw = await self._redis.hgetall(self._KEY)
        return [ExamAttempt.model_validate_json(data) for data in raw.values()]

    async def delete_exam_attempt(self, attempt_id: str) -> None:
        await self._redis.hdel(self._KEY, attempt_id)

    async def clear(self) -> None:
        await self._redis.delete(self._KEY)

    async def close(self) -> None:
        await self._redis.aclose()


# ── Statistics ───────────────────────────────────────────────


async def get_exam_stats(store: ExamAttemptStore, exam_level: ExamLevel | str) -> ExamStats:
    """Pass rate, averages and score trend for one level's history."""
    attempts = await store.get_exam_history(exam_level)
    if not attempts:
        return ExamStats()

    count = len(attempts)
    pass_count = sum(1 for a in attempts if a.passed)

    trend = "insufficient_data"
    if count >= TREND_MIN_ATTEMPTS:
        recent = attempts[:TREND_WINDOW]
        diff = recent[0].score - recent[-1].score
        if diff > TREND_THRESHOLD:
            trend = "improving"
        elif diff < -TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "stable"

    return ExamStats(
        total_attempts=count,
        pass_count=pass_count,
        fail_count=count - pass_count,
        pass_rate=round_half_up(pass_count / count * 100),
        average_score=round_half_up(sum(a.score for a in attempts) / count),
        best_score=max(a.score for a in attempts),
        average_time=round_half_up(sum(a.time_spent for a in attempts) / count),
        recent_trend=trend,
    )


# ── Module-level Singleton ───────────────────────────────────

_store: ExamAttemptStore | None = None


def get_exam_attempt_store() -> ExamAttemptStore:
    """Get the singleton attempt archive instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.storage_type == "redis" and settings.redis_url:
            _store = RedisExamAttemptStore(settings.redis_url)
            logger.info("Initialized RedisExamAttemptStore")
        else:
            _store = InMemoryExamAttemptStore()
            logger.info("Initialized InMemoryExamAttemptStore")
    return _store
