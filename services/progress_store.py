"""Process-wide study counters: streaks, answer totals, flagged questions.

Detailed per-question history lives in the progress repository; this store
only keeps the quick numbers shown on a dashboard.  Streak days are local
calendar dates, so studying late in the evening never lands on "tomorrow".

The counters are saved as one ``ProgressSnapshot`` under a single key after
every change and loaded back on startup.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta

from pydantic import ValidationError

from models.progress import ProgressSnapshot

logger = logging.getLogger(__name__)

PROGRESS_STORAGE_KEY = "hamforge-progress"


# ── Abstract Interface ───────────────────────────────────────


class ProgressStateBackend(ABC):
    """Where the counters snapshot is kept between restarts."""

    @abstractmethod
    async def load(self) -> ProgressSnapshot | None:
        """The saved snapshot, or None if nothing (readable) is stored."""
        ...

    @abstractmethod
    async def save(self, snapshot: ProgressSnapshot) -> None:
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemoryProgressStateBackend(ProgressStateBackend):
    def __init__(self) -> None:
        self._data: str | None = None

    async def load(self) -> ProgressSnapshot | None:
        if self._data is None:
            return None
        return ProgressSnapshot.model_validate_json(self._data)

    async def save(self, snapshot: ProgressSnapshot) -> None:
        self._data = snapshot.model_dump_json(by_alias=True)


# ── Redis Implementation ─────────────────────────────────────


class RedisProgressStateBackend(ProgressStateBackend):
    """Snapshot stored as JSON under a single Redis key (no TTL)."""

    def __init__(self, redis_url: str, key: str = PROGRESS_STORAGE_KEY):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )
        self._key = key

    async def load(self) -> ProgressSnapshot | None:
        data = await self._redis.get(self._key)
        if data is None:
            return None
        try:
            return ProgressSnapshot.model_validate_json(data)
        except ValidationError:
            logger.warning("Ignoring unreadable study counters under %s", self._key)
            return None

    async def save(self, snapshot: ProgressSnapshot) -> None:
        await self._redis.set(self._key, snapshot.model_dump_json(by_alias=True))

    async def close(self) -> None:
        await self._redis.aclose()


# ── Store ────────────────────────────────────────────────────


class ProgressStore:
    def __init__(self, backend: ProgressStateBackend | None = None) -> None:
        self.backend = backend or InMemoryProgressStateBackend()
        self._loaded = False
        self.current_streak = 0
        self.longest_streak = 0
        self.last_study_date: str | None = None
        self.total_questions_answered = 0
        self.total_correct = 0
        self.flagged_questions: set[str] = set()

    # ── Persistence ──────────────────────────────────────────

    async def load(self) -> bool:
        """Replace the counters with the saved snapshot.  False if none was saved."""
        snapshot = await self.backend.load()
        self._loaded = True
        if snapshot is None:
            return False
        self._apply(snapshot)
        return True

    async def ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            await self.load()
        except Exception:
            logger.exception("Failed to load study counters")

    async def save(self) -> None:
        await self.backend.save(self.snapshot())

    async def _write_through(self) -> None:
        # Never overwrite a saved snapshot that could not be read first.
        if not self._loaded:
            return
        try:
            await self.save()
        except Exception:
            logger.exception("Failed to persist study counters")

    # ── Mutations ────────────────────────────────────────────

    async def record_study_day(self, today: date | None = None) -> None:
        """Count *today* towards the streak; repeated calls on one day are no-ops."""
        await self.ensure_loaded()
        today = today or date.today()
        today_str = today.isoformat()
        if self.last_study_date == today_str:
            return

        yesterday_str = (today - timedelta(days=1)).isoformat()
        streak = self.current_streak + 1 if self.last_study_date == yesterday_str else 1

        self.current_streak = streak
        self.longest_streak = max(streak, self.longest_streak)
        self.last_study_date = today_str
        logger.debug("Study day recorded: %s (streak=%d)", today_str, streak)
        await self._write_through()

    async def increment_answered(self, correct: bool) -> None:
        await self.ensure_loaded()
        self.total_questions_answered += 1
        if correct:
            self.total_correct += 1
        await self._write_through()

    async def toggle_flag_question(self, question_id: str) -> bool:
        """Flip the flag on *question_id*.  Returns the new flagged state."""
        await self.ensure_loaded()
        if question_id in self.flagged_questions:
            self.flagged_questions.discard(question_id)
            flagged = False
        else:
            self.flagged_questions.add(question_id)
            flagged = True
        await self._write_through()
        return flagged

    async def reset_progress(self) -> None:
        """Zero the counters and streaks.  Flags are kept."""
        await self.ensure_loaded()
        self.current_streak = 0
        self.longest_streak = 0
        self.last_study_date = None
        self.total_questions_answered = 0
        self.total_correct = 0
        await self._write_through()

    async def restore(self, snapshot: ProgressSnapshot) -> None:
        """Replace every counter and flag with *snapshot* and save it.

        Raises whatever the backend raises, so an import can report it.
        """
        self._apply(snapshot)
        self._loaded = True
        await self.save()

    # ── Reads ────────────────────────────────────────────────

    def is_flagged(self, question_id: str) -> bool:
        return question_id in self.flagged_questions

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            current_streak=self.current_streak,
            longest_streak=self.longest_streak,
            last_study_date=self.last_study_date,
            total_questions_answered=self.total_questions_answered,
            total_correct=self.total_correct,
            flagged_questions=sorted(self.flagged_questions),
        )

    def _apply(self, snapshot: ProgressSnapshot) -> None:
        self.current_streak = snapshot.current_streak
        self.longest_streak = snapshot.longest_streak
        self.last_study_date = snapshot.last_study_date
        self.total_questions_answered = snapshot.total_questions_answered
        self.total_correct = snapshot.total_correct
        self.flagged_questions = set(snapshot.flagged_questions)


# ── Module-level Singleton ───────────────────────────────────

_store: ProgressStore | None = None


def get_progress_store() -> ProgressStore:
    """Get the singleton progress store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.storage_type == "redis" and settings.redis_url:
            _store = ProgressStore(RedisProgressStateBackend(settings.redis_url))
            logger.info("Initialized ProgressStore with Redis backend")
        else:
            _store = ProgressStore()
            logger.info("Initialized ProgressStore with in-memory backend")
    return _store
