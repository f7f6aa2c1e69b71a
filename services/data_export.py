"""Export and import of a learner's complete study data.

The export bundles every progress record, every archived exam attempt and
the progress-store counters into one versioned JSON document.  Importing
replaces all three wholesale.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from models.export import ExportData, ExportedProgress, ImportResult
from services.exam_storage import ExamAttemptStore
from services.progress_repository import ProgressRepository
from services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

_SETTINGS_NUMBERS = ("currentStreak", "longestStreak", "totalQuestionsAnswered", "totalCorrect")


async def export_all_data(
    repository: ProgressRepository,
    attempt_store: ExamAttemptStore,
    progress_store: ProgressStore,
) -> ExportData:
    await progress_store.ensure_loaded()
    return ExportData(
        exported_at=datetime.now(),
        progress=ExportedProgress(
            question_progress=await repository.all(),
            exam_attempts=await attempt_store.all_attempts(),
        ),
        settings=progress_store.snapshot(),
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_import_data(data: Any) -> bool:
    """Structural check of a raw (camelCase) export document."""
    if not isinstance(data, dict):
        return False
    if not isinstance(data.get("version"), str) or not isinstance(data.get("exportedAt"), str):
        return False

    progress = data.get("progress")
    if not isinstance(progress, dict):
        return False
    if not isinstance(progress.get("questionProgress"), list):
        return False
    if not isinstance(progress.get("examAttempts"), list):
        return False

    settings = data.get("settings")
    if not isinstance(settings, dict):
        return False
    if not all(_is_number(settings.get(key)) for key in _SETTINGS_NUMBERS):
        return False
    last_study = settings.get("lastStudyDate")
    if last_study is not None and not isinstance(last_study, str):
        return False
    if not isinstance(settings.get("flaggedQuestions", []), list):
        return False

    return True


async def import_data(
    data: dict[str, Any],
    repository: ProgressRepository,
    attempt_store: ExamAttemptStore,
    progress_store: ProgressStore,
) -> ImportResult:
    """Replace all stored study data with the contents of *data*.

    Never raises; failures are reported through ``ImportResult``.
    """
    if not validate_import_data(data):
        return ImportResult(success=False, message="Invalid export file format.")

    try:
        export = ExportData.model_validate(data)
    except ValidationError as exc:
        logger.warning("Import rejected: %d validation errors", exc.error_count())
        return ImportResult(success=False, message=f"Invalid export data: {exc.error_count()} errors")

    try:
        await repository.clear()
        await attempt_store.clear()

        for progress in export.progress.question_progress:
            await repository.put(progress)
        for attempt in export.progress.exam_attempts:
            await attempt_store.add_attempt(attempt)

        await progress_store.restore(export.settings)
    except Exception as exc:
        logger.exception("Import failed")
        return ImportResult(success=False, message=str(exc) or "An unknown error occurred during import.")

    total = len(export.progress.question_progress) + len(export.progress.exam_attempts)
    logger.info("Imported %d records (export version %s)", total, export.version)
    return ImportResult(success=True, message=f"Successfully imported {total} records and settings.")
