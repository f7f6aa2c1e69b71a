"""Exam generator and scorer.

Follows the Volunteer Examiner question selection rules:

- an exam draws one question from each group of the pool
  (T1A, T1B, …, T0C) — 35 groups, 35 questions;
- the question within a group is picked uniformly at random;
- 26 or more correct answers pass (74%).
"""

from __future__ import annotations

import logging
import random
import string
import time
from collections.abc import Iterable
from datetime import datetime

from errors import ExamGenerationError
from models.exam import (
    ExamAnswerRecord,
    ExamConfig,
    ExamQuestion,
    ExamResult,
    GeneratedExam,
    SubelementScore,
)
from models.question import ExamLevel, Question, is_group_key
from services.question_pool import QuestionPoolProvider, get_question_pool_provider
from services.spaced_repetition import round_half_up

logger = logging.getLogger(__name__)

EXAM_TIME_LIMIT_MINUTES = 60
EXAM_PASSING_SCORE = 26
EXAM_PASSING_PERCENTAGE = 74

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _pool(pool: QuestionPoolProvider | None) -> QuestionPoolProvider:
    return pool or get_question_pool_provider()


def _random_suffix(rng: random.Random, length: int = 9) -> str:
    return "".join(rng.choice(_ID_ALPHABET) for _ in range(length))


def generate_exam_id(exam_level: ExamLevel | str, rng: random.Random | None = None) -> str:
    """``exam-<level>-<epoch ms>-<base36 suffix>``."""
    rng = rng or random.Random()
    level = ExamLevel(exam_level).value
    return f"exam-{level}-{int(time.time() * 1000)}-{_random_suffix(rng)}"


def _known_level(exam_level: ExamLevel | str) -> ExamLevel | None:
    try:
        return ExamLevel(exam_level)
    except ValueError:
        return None


def get_exam_groups(exam_level: ExamLevel | str, pool: QuestionPoolProvider | None = None) -> list[str]:
    """Sorted distinct group keys (``subelement + group``) for a level.

    Unknown levels have no groups.
    """
    level = _known_level(exam_level)
    if level is None:
        return []
    questions = _pool(pool).get_question_pool(level)
    return sorted({q.group_key for q in questions})


def get_questions_for_group(
    exam_level: ExamLevel | str,
    group: str,
    pool: QuestionPoolProvider | None = None,
) -> list[Question]:
    """Questions in *group*; empty for malformed or unknown group keys and levels."""
    level = _known_level(exam_level)
    if level is None or not isinstance(group, str) or not is_group_key(group):
        return []
    return [q for q in _pool(pool).get_question_pool(level) if q.group_key == group]


def generate_exam(
    exam_level: ExamLevel | str,
    pool: QuestionPoolProvider | None = None,
    rng: random.Random | None = None,
) -> GeneratedExam:
    """Build an exam with one randomly chosen question per group.

    Raises:
        PoolLoadError: the level's pool could not be loaded. Not retried.
        ExamGenerationError: *exam_level* is not a known license class.
    """
    try:
        level = ExamLevel(exam_level)
    except ValueError as exc:
        raise ExamGenerationError(f"Unknown exam level: {exam_level!r}") from exc
    provider = _pool(pool)
    rng = rng or random.Random()

    by_group: dict[str, list[Question]] = {}
    for question in provider.get_question_pool(level):
        by_group.setdefault(question.group_key, []).append(question)

    questions: list[ExamQuestion] = []
    for group in sorted(by_group):
        selected = rng.choice(by_group[group])
        questions.append(
            ExamQuestion(**selected.model_dump(), exam_index=len(questions) + 1)
        )

    exam = GeneratedExam(
        id=generate_exam_id(level, rng),
        exam_level=level,
        questions=questions,
        created_at=datetime.now(),
        time_limit=EXAM_TIME_LIMIT_MINUTES,
        passing_score=EXAM_PASSING_SCORE,
    )
    logger.info("Generated exam %s with %d questions", exam.id, len(questions))
    return exam


def calculate_exam_result(
    questions: Iterable[Question],
    answers: Iterable[ExamAnswerRecord],
) -> ExamResult:
    """Grade an attempt; questions without a matching answer count as wrong."""
    questions = list(questions)
    answer_map = {a.question_id: a.correct for a in answers}

    correct_count = 0
    by_subelement: dict[str, SubelementScore] = {}

    for question in questions:
        is_correct = answer_map.get(question.id) is True
        if is_correct:
            correct_count += 1

        bucket = by_subelement.setdefault(question.subelement, SubelementScore())
        bucket.total += 1
        if is_correct:
            bucket.correct += 1

    for bucket in by_subelement.values():
        bucket.percentage = round_half_up(bucket.correct / bucket.total * 100) if bucket.total else 0

    total = len(questions)
    return ExamResult(
        total_questions=total,
        correct_count=correct_count,
        incorrect_count=total - correct_count,
        score=round_half_up(correct_count / total * 100) if total else 0,
        passed=correct_count >= EXAM_PASSING_SCORE,
        passing_score=EXAM_PASSING_SCORE,
        by_subelement=by_subelement,
    )


def get_exam_config(exam_level: ExamLevel | str, pool: QuestionPoolProvider | None = None) -> ExamConfig:
    """Exam parameters for a level; zeroed when the level is unknown or has no pool."""
    groups = get_exam_groups(exam_level, pool)
    if not groups:
        return ExamConfig(
            total_questions=0,
            passing_score=0,
            passing_percentage=0,
            time_limit=0,
            groups=[],
        )

    return ExamConfig(
        total_questions=len(groups),
        passing_score=EXAM_PASSING_SCORE,
        passing_percentage=EXAM_PASSING_PERCENTAGE,
        time_limit=EXAM_TIME_LIMIT_MINUTES,
        groups=groups,
    )
