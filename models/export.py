"""Export/import envelope for a learner's full study data."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from models.base import CamelModel
from models.exam import ExamAttempt
from models.progress import ProgressSnapshot, QuestionProgress

EXPORT_VERSION = "1.0"


class ExportedProgress(CamelModel):
    question_progress: list[QuestionProgress] = Field(default_factory=list)
    exam_attempts: list[ExamAttempt] = Field(default_factory=list)


class ExportData(CamelModel):
    version: str = EXPORT_VERSION
    exported_at: datetime
    progress: ExportedProgress = Field(default_factory=ExportedProgress)
    settings: ProgressSnapshot = Field(default_factory=ProgressSnapshot)


class ImportResult(CamelModel):
    success: bool
    message: str
