"""API request / response models."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from models.base import CamelModel
from models.progress import QuestionProgress
from models.question import ExamLevel


class StartExamRequest(CamelModel):
    """POST /api/exam/sessions — request body."""

    exam_level: ExamLevel


class ExamAnswerRequest(CamelModel):
    """POST /api/exam/sessions/{id}/answer — request body."""

    answer_index: int = Field(ge=0, le=3)


class NavigateRequest(CamelModel):
    """POST /api/exam/sessions/{id}/navigate — request body."""

    action: Literal["next", "prev", "goto"]
    index: int | None = None


class PracticeAnswerRequest(CamelModel):
    """POST /api/practice/sessions/{id}/answer — request body."""

    selected_index: int = Field(ge=0, le=3)
    correct: bool
    confidence: int | None = Field(default=None, ge=1, le=5)


class FlagResponse(CamelModel):
    question_id: str
    flagged: bool


class QuestionProgressResponse(CamelModel):
    """GET /api/progress/question/{id} — ``progress`` is null when never answered."""

    question_id: str
    progress: QuestionProgress | None = None
    flagged: bool = False


class ResetResponse(CamelModel):
    exam_level: ExamLevel
    removed: int
