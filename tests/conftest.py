"""Shared pytest fixtures for the study engine tests.

Provides:
- ``pool``: StaticQuestionPoolProvider with synthetic technician/general pools
  (7 subelements x 5 groups = 35 groups, 3 questions per group)
- ``repository`` / ``attempt_store`` / ``session_store``: fresh in-memory stores
- ``progress_store``: fresh ProgressStore
- ``scheduler``: QuestionScheduler over ``pool`` and ``repository``
"""

from __future__ import annotations

import os

# Exam timers are driven by hand in tests.
os.environ.setdefault("TIMER_INTERVAL_SECONDS", "0")

import pytest

from models.question import ExamLevel, Question
from services.exam_storage import InMemoryExamAttemptStore
from services.progress_repository import InMemoryProgressRepository
from services.progress_store import ProgressStore
from services.question_pool import StaticQuestionPoolProvider
from services.question_scheduler import QuestionScheduler
from services.session_store import InMemorySessionStore

SUBELEMENT_COUNT = 7
GROUP_LETTERS = "ABCDE"
QUESTIONS_PER_GROUP = 3
GROUP_COUNT = SUBELEMENT_COUNT * len(GROUP_LETTERS)


def make_question(subelement: str, group: str, number: int, correct: int = 0) -> Question:
    qid = f"{subelement}{group}{number:02d}"
    return Question(
        id=qid,
        subelement=subelement,
        group=group,
        question=f"Question {qid}?",
        answers=[f"{qid} answer {i}" for i in range(4)],
        correct_answer=correct,
        refs="[97.1]",
    )


def make_pool(prefix: str) -> list[Question]:
    """35 groups of 3 questions; correct answer rotates 0..3 by question number."""
    questions = []
    for s in range(1, SUBELEMENT_COUNT + 1):
        for group in GROUP_LETTERS:
            for n in range(1, QUESTIONS_PER_GROUP + 1):
                questions.append(make_question(f"{prefix}{s}", group, n, correct=n % 4))
    return questions


@pytest.fixture
def technician_questions() -> list[Question]:
    return make_pool("T")


@pytest.fixture
def pool(technician_questions) -> StaticQuestionPoolProvider:
    return StaticQuestionPoolProvider(
        {
            ExamLevel.TECHNICIAN: technician_questions,
            ExamLevel.GENERAL: make_pool("G"),
        }
    )


@pytest.fixture
def repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def attempt_store() -> InMemoryExamAttemptStore:
    return InMemoryExamAttemptStore()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore(ttl_seconds=3600)


@pytest.fixture
def progress_store() -> ProgressStore:
    return ProgressStore()


@pytest.fixture
def scheduler(pool, repository) -> QuestionScheduler:
    return QuestionScheduler(pool, repository)
