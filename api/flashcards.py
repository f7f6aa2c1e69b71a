"""Flashcards API — weighted, interleaved decks drawn from the pool.

Endpoints:
- ``POST /api/flashcards/deck``                       — select a deck
- ``GET  /api/flashcards/recommendation/{level}``     — suggested deck mode
- ``POST /api/flashcards/summary``                    — score a finished deck
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from models.flashcard import (
    FlashcardDeck,
    FlashcardDeckRequest,
    FlashcardSummary,
    FlashcardSummaryRequest,
    ModeRecommendation,
)
from models.question import ExamLevel
from services.flashcard_selection import build_flashcard_deck, calculate_session_summary, recommend_mode
from services.progress_store import get_progress_store
from services.question_scheduler import get_question_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])


@router.post("/deck", response_model=FlashcardDeck)
async def flashcard_deck(req: FlashcardDeckRequest):
    return await build_flashcard_deck(get_question_scheduler(), req)


@router.get("/recommendation/{level}", response_model=ModeRecommendation)
async def flashcard_recommendation(level: ExamLevel):
    return await recommend_mode(get_question_scheduler(), get_progress_store(), level)


@router.post("/summary", response_model=FlashcardSummary)
async def flashcard_summary(req: FlashcardSummaryRequest):
    pool = get_question_scheduler().get_question_pool(req.exam_level)
    summary = calculate_session_summary(req.results, pool, req.start_time)
    logger.info(
        "Flashcard deck finished: %d cards, accuracy %.2f", summary.total_cards, summary.accuracy
    )
    return summary
