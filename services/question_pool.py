"""Question pool provider — read-only access to the per-level question pools.

Pools are authored as JSON files (``<pool_dir>/<level>.json``) in the
``QuestionPool`` format and loaded once per process.  The Extra class pool
has not been authored yet, so it resolves to an empty list instead of an
error; a missing or malformed file for an authored level raises
``PoolLoadError``.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import ValidationError

from errors import PoolLoadError
from models.question import ExamLevel, Question, QuestionPool

logger = logging.getLogger(__name__)

# Levels whose pool content exists; the rest return [].
AUTHORED_LEVELS = frozenset({ExamLevel.TECHNICIAN, ExamLevel.GENERAL})


# ── Abstract Interface ───────────────────────────────────────


class QuestionPoolProvider(ABC):
    """Source of the full question set for a license level."""

    @abstractmethod
    def get_question_pool(self, exam_level: ExamLevel | str) -> list[Question]:
        """Return every question for *exam_level*.

        Raises:
            PoolLoadError: when an authored pool cannot be loaded.
        """
        ...

    def get_subelements(self, exam_level: ExamLevel | str) -> list[str]:
        """Sorted distinct subelement codes (``T1`` … ``T0``)."""
        return sorted({q.subelement for q in self.get_question_pool(exam_level)})

    def get_question(self, exam_level: ExamLevel | str, question_id: str) -> Question | None:
        for question in self.get_question_pool(exam_level):
            if question.id == question_id:
                return question
        return None


# ── JSON file implementation ─────────────────────────────────


class JsonQuestionPoolProvider(QuestionPoolProvider):
    """Loads ``<pool_dir>/<level>.json`` lazily and caches it."""

    def __init__(self, pool_dir: str | Path):
        self._pool_dir = Path(pool_dir)
        self._cache: dict[ExamLevel, list[Question]] = {}
        self._lock = threading.RLock()

    def _path(self, level: ExamLevel) -> Path:
        return self._pool_dir / f"{level.value}.json"

    def _load(self, level: ExamLevel) -> list[Question]:
        path = self._path(level)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise PoolLoadError(level.value, f"pool file not found: {path}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise PoolLoadError(level.value, str(exc)) from exc

        try:
            pool = QuestionPool.model_validate(raw)
        except ValidationError as exc:
            raise PoolLoadError(level.value, f"invalid pool file: {exc.error_count()} errors") from exc

        if pool.exam_level != level:
            raise PoolLoadError(
                level.value, f"pool file declares level '{pool.exam_level.value}'"
            )
        logger.info("Loaded %d questions for %s pool", len(pool.questions), level.value)
        return pool.questions

    def get_question_pool(self, exam_level: ExamLevel | str) -> list[Question]:
        level = ExamLevel(exam_level)
        if level not in AUTHORED_LEVELS:
            logger.warning("%s class exam pool is not yet available", level.value)
            return []
        with self._lock:
            if level not in self._cache:
                self._cache[level] = self._load(level)
            return list(self._cache[level])

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


# ── In-memory implementation ─────────────────────────────────


class StaticQuestionPoolProvider(QuestionPoolProvider):
    """Pools supplied up front, e.g. fixtures or pre-parsed content."""

    def __init__(self, pools: Mapping[ExamLevel | str, Iterable[Question]] | None = None):
        self._pools: dict[ExamLevel, list[Question]] = {
            ExamLevel(level): list(questions) for level, questions in (pools or {}).items()
        }

    def get_question_pool(self, exam_level: ExamLevel | str) -> list[Question]:
        return list(self._pools.get(ExamLevel(exam_level), []))


# ── Module-level Singleton ───────────────────────────────────

_provider: QuestionPoolProvider | None = None


def get_question_pool_provider() -> QuestionPoolProvider:
    """Get the singleton pool provider configured from settings."""
    global _provider
    if _provider is None:
        from config.settings import get_settings

        settings = get_settings()
        _provider = JsonQuestionPoolProvider(settings.pool_dir)
        logger.info("Initialized JsonQuestionPoolProvider (dir=%s)", settings.pool_dir)
    return _provider


def set_question_pool_provider(provider: QuestionPoolProvider | None) -> None:
    """Replace the singleton (tests, alternate content sources)."""
    global _provider
    _provider = provider
