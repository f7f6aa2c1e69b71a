"""Exam and practice session models.

``ExamSessionSnapshot`` is the persisted form of an exam session: answers
are stored as ``[questionId, selectedIndex]`` pairs and flags as a list of
indices so the record survives JSON round-trips.
"""

from __future__ import annotations

import time
from datetime import datetime

from pydantic import Field

from models.base import CamelModel
from models.exam import ExamQuestionView, ExamResult, GeneratedExam
from models.progress import MasteryStatus
from models.question import ExamLevel, Question


# ── Exam session ─────────────────────────────────────────────


class ExamSessionSnapshot(CamelModel):
    """Recoverable exam session record stored under a fixed key."""

    exam: GeneratedExam | None = None
    exam_level: ExamLevel | None = None
    current_index: int = 0
    answers: list[tuple[str, int]] = Field(default_factory=list)
    flagged_questions: list[int] = Field(default_factory=list)
    is_complete: bool = False
    result: ExamResult | None = None
    saved_exam_id: str | None = None
    time_remaining: int = 0  # seconds
    start_time: datetime | None = None
    updated_at: float = Field(default_factory=time.time)


class ExamSessionState(CamelModel):
    """Read-only view of an exam session returned by the API."""

    session_id: str
    exam_id: str | None = None
    exam_level: ExamLevel
    total_questions: int = 0
    current_index: int = 0
    current_question: ExamQuestionView | None = None
    selected_answer: int | None = None
    answered_indices: list[int] = Field(default_factory=list)
    flagged_questions: list[int] = Field(default_factory=list)
    is_loading: bool = True
    is_complete: bool = False
    error: str | None = None
    result: ExamResult | None = None
    saved_exam_id: str | None = None
    time_remaining: int = 0
    start_time: datetime | None = None


# ── Practice session ─────────────────────────────────────────


class SessionConfig(CamelModel):
    """Filters and display options for a practice session."""

    exam_level: ExamLevel
    question_count: int = Field(default=10, ge=0)
    subelements: list[str] = Field(default_factory=list)  # ["T1", "T5"]
    groups: list[str] = Field(default_factory=list)  # ["T1A", "T5C"]
    status: list[MasteryStatus] = Field(default_factory=list)
    flagged_only: bool = False
    shuffle_answers: bool = False
    show_explanations: bool = True


class PracticeAnswer(CamelModel):
    question_id: str
    selected_answer: int
    correct: bool
    confidence: int | None = None


class SessionStats(CamelModel):
    total_questions: int = 0
    answered: int = 0
    correct: int = 0
    incorrect: int = 0
    accuracy: int = 0


class PracticeSessionState(CamelModel):
    """Read-only view of a practice session returned by the API."""

    session_id: str
    config: SessionConfig
    questions: list[Question] = Field(default_factory=list)
    current_index: int = 0
    current_question: Question | None = None
    answers: list[PracticeAnswer] = Field(default_factory=list)
    is_complete: bool = False
    is_loading: bool = True
    error: str | None = None
    stats: SessionStats = Field(default_factory=SessionStats)
