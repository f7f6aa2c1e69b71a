"""Flashcard deck selection models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import Field

from models.base import CamelModel
from models.question import ExamLevel, Question


class SessionMode(str, Enum):
    ADAPTIVE = "adaptive"  # weak and rusty areas first
    REVIEW = "review"  # categories already studied
    EXPLORE = "explore"  # categories never studied
    FOCUS = "focus"  # adaptive, limited to chosen categories


WeightReason = Literal["weak", "rusty", "explore", "normal", "strong"]


class CategoryProgress(CamelModel):
    """Aggregated answer history for one subelement (or group)."""

    category_id: str
    total_attempts: int = 0
    total_correct: int = 0
    recent_attempts: int = 0
    recent_correct: int = 0
    overall_accuracy: float = 0.0
    recent_accuracy: float = 0.0
    weakness_score: float = 0.0  # 0-1, higher is weaker
    last_studied: datetime | None = None


class CategoryWeight(CamelModel):
    category_id: str
    weight: float
    reason: WeightReason = "normal"


class FlashcardDeck(CamelModel):
    cards: list[Question] = Field(default_factory=list)
    category_weights: list[CategoryWeight] = Field(default_factory=list)
    interleaving: float = 0.0


class CardResult(CamelModel):
    card_id: str  # pool question ID
    correct: bool
    time_ms: int = Field(default=0, ge=0)


class CategoryPerformance(CamelModel):
    category_id: str
    correct: int
    total: int
    accuracy: float


class FlashcardSummary(CamelModel):
    total_cards: int = 0
    accuracy: float = 0.0
    time_spent_ms: int = 0
    average_time_per_card: float = 0.0
    category_performance: list[CategoryPerformance] = Field(default_factory=list)
    weakest_category: str | None = None
    strongest_category: str | None = None


class ModeRecommendation(CamelModel):
    mode: SessionMode
    reason: str


# ── Requests ─────────────────────────────────────────────────


class FlashcardDeckRequest(CamelModel):
    """POST /api/flashcards/deck — request body."""

    exam_level: ExamLevel
    count: int = Field(default=20, ge=0)
    mode: SessionMode = SessionMode.ADAPTIVE
    focus_categories: list[str] = Field(default_factory=list)


class FlashcardSummaryRequest(CamelModel):
    """POST /api/flashcards/summary — request body."""

    exam_level: ExamLevel
    start_time: datetime
    results: list[CardResult] = Field(default_factory=list)
