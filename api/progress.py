"""Progress API — spaced-repetition statistics, flags, export/import.

A level whose pool cannot be loaded is answered with 503 by the
application-level ``HamForgeError`` handler.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException

from models.errors import ErrorCode, format_error
from models.export import ExportData, ImportResult
from models.progress import ProgressSnapshot, ProgressStats, SubelementProgress
from models.question import ExamLevel
from models.request import FlagResponse, QuestionProgressResponse, ResetResponse
from services.data_export import export_all_data, import_data
from services.exam_storage import get_exam_attempt_store
from services.progress_repository import get_progress_repository
from services.progress_store import get_progress_store
from services.question_scheduler import get_question_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/progress", tags=["progress"])


# Static paths are registered before ``/{level}`` so they are not captured by it.


@router.get("/export", response_model=ExportData)
async def export_progress():
    return await export_all_data(
        get_progress_repository(), get_exam_attempt_store(), get_progress_store()
    )


@router.post("/import", response_model=ImportResult)
async def import_progress(data: Any = Body(...)):
    result = await import_data(
        data, get_progress_repository(), get_exam_attempt_store(), get_progress_store()
    )
    if not result.success:
        raise HTTPException(
            status_code=400,
            detail=format_error(ErrorCode.INVALID_REQUEST, result.message),
        )
    return result


@router.get("/summary", response_model=ProgressSnapshot)
async def progress_summary():
    """Streaks, answer totals and flagged questions."""
    store = get_progress_store()
    await store.ensure_loaded()
    return store.snapshot()


@router.get("/question/{question_id}", response_model=QuestionProgressResponse)
async def question_progress(question_id: str):
    progress = await get_question_scheduler().get_question_progress(question_id)
    store = get_progress_store()
    await store.ensure_loaded()
    return QuestionProgressResponse(
        question_id=question_id,
        progress=progress,
        flagged=store.is_flagged(question_id),
    )


@router.post("/flags/{question_id}", response_model=FlagResponse)
async def toggle_flag(question_id: str):
    flagged = await get_progress_store().toggle_flag_question(question_id)
    return FlagResponse(question_id=question_id, flagged=flagged)


@router.get("/{level}", response_model=ProgressStats)
async def progress_stats(level: ExamLevel):
    return await get_question_scheduler().get_progress_stats(level)


@router.get("/{level}/subelements", response_model=dict[str, SubelementProgress])
async def progress_by_subelement(level: ExamLevel):
    return await get_question_scheduler().get_progress_by_subelement(level)


@router.delete("/{level}", response_model=ResetResponse)
async def reset_progress(level: ExamLevel):
    removed = await get_question_scheduler().reset_progress(level)
    return ResetResponse(exam_level=level, removed=removed)
