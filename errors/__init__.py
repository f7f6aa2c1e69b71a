"""Custom exception hierarchy for the HamForge study engine."""

from errors.exceptions import (
    ArchiveError,
    ExamGenerationError,
    HamForgeError,
    PoolLoadError,
    ProgressSaveError,
    SessionNotFoundError,
)

__all__ = [
    "ArchiveError",
    "ExamGenerationError",
    "HamForgeError",
    "PoolLoadError",
    "ProgressSaveError",
    "SessionNotFoundError",
]
