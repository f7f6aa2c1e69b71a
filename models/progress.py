"""Per-question progress and spaced-repetition models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from models.base import CamelModel


class MasteryStatus(str, Enum):
    """Coarse bucket derived from interval and historical accuracy."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


class SM2Input(CamelModel):
    quality: int = Field(ge=0, le=5)
    repetitions: int = Field(default=0, ge=0)
    ease_factor: float
    interval: int = Field(default=0, ge=0)


class SM2Result(CamelModel):
    ease_factor: float
    interval: int
    next_review: datetime
    status: MasteryStatus
    repetitions: int = 0


class QuestionProgress(CamelModel):
    """Persisted scheduling state for one question, created on first answer."""

    question_id: str
    attempts: int = Field(default=0, ge=0)
    correct_count: int = Field(default=0, ge=0)
    ease_factor: float = 2.5
    interval: int = Field(default=0, ge=0)
    status: MasteryStatus = MasteryStatus.NEW
    next_review: datetime
    last_attempt: datetime
    confidence_history: list[int] = Field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return self.correct_count / self.attempts if self.attempts else 0.0


class ProgressStats(CamelModel):
    """Counts by mastery status for one level's pool."""

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    mastered: int = 0
    accuracy: float = 0.0
    due_count: int = 0


class SubelementProgress(CamelModel):
    total: int = 0
    mastered: int = 0
    accuracy: float = 0.0


class ProgressSnapshot(CamelModel):
    """Serializable state of the process-wide progress store."""

    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: str | None = None  # YYYY-MM-DD, local time
    total_questions_answered: int = 0
    total_correct: int = 0
    flagged_questions: list[str] = Field(default_factory=list)
