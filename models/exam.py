"""Exam generation, scoring and archive models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from models.base import CamelModel
from models.question import ExamLevel, Question


class ExamQuestion(Question):
    """A pool question placed at a 1-based position in a generated exam."""

    exam_index: int = Field(ge=1)


class ExamQuestionView(CamelModel):
    """An exam question as shown to the candidate.

    The answer key and explanation stay empty until the exam is submitted.
    """

    id: str
    subelement: str
    group: str
    question: str
    answers: list[str]
    refs: str = ""
    figure: str | None = None
    exam_index: int
    correct_answer: int | None = None
    explanation: str | None = None

    @classmethod
    def of(cls, question: ExamQuestion, reveal: bool = False) -> ExamQuestionView:
        hidden = None if reveal else {"correct_answer", "explanation"}
        return cls(**question.model_dump(exclude=hidden))


class GeneratedExam(CamelModel):
    id: str
    exam_level: ExamLevel
    questions: list[ExamQuestion] = Field(default_factory=list)
    created_at: datetime
    time_limit: int  # minutes
    passing_score: int  # correct answers needed


class ExamAnswerRecord(CamelModel):
    """Scoring input; built at submission time from the session answers."""

    question_id: str
    correct: bool


class ExamAnswer(CamelModel):
    """Archived per-question answer. ``selected_answer`` is -1 when unanswered."""

    question_id: str
    selected_answer: int
    correct: bool


class SubelementScore(CamelModel):
    correct: int = 0
    total: int = 0
    percentage: int = 0


class ExamResult(CamelModel):
    total_questions: int
    correct_count: int
    incorrect_count: int
    score: int  # rounded percentage
    passed: bool
    passing_score: int
    by_subelement: dict[str, SubelementScore] = Field(default_factory=dict)


class ExamConfig(CamelModel):
    total_questions: int
    passing_score: int
    passing_percentage: int
    time_limit: int
    groups: list[str] = Field(default_factory=list)


class ExamAttempt(CamelModel):
    """A completed exam as archived after submission."""

    id: str
    exam_level: ExamLevel
    date: datetime
    score: int
    passed: bool
    time_spent: int  # seconds
    answers: list[ExamAnswer] = Field(default_factory=list)


class ExamStats(CamelModel):
    total_attempts: int = 0
    pass_count: int = 0
    fail_count: int = 0
    pass_rate: int = 0
    average_score: int = 0
    best_score: int = 0
    average_time: int = 0  # seconds
    recent_trend: Literal["improving", "declining", "stable", "insufficient_data"] = (
        "insufficient_data"
    )
