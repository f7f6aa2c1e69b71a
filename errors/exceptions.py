"""Domain-specific exceptions for the HamForge study engine.

These exceptions let the session controllers and API layer tell apart a
pool that could not be loaded, a progress write that failed and a session
that does not exist, and respond with the right state or HTTP status.
"""

from __future__ import annotations


class HamForgeError(Exception):
    """Base class for all study-engine errors."""


class PoolLoadError(HamForgeError):
    """A question pool file is missing, unreadable or malformed.

    Raised by the pool provider and propagated unchanged through exam
    generation so the exam session can surface it as its ``error`` state.
    """

    def __init__(self, exam_level: str, message: str) -> None:
        self.exam_level = exam_level
        super().__init__(f"Question pool '{exam_level}' unavailable: {message}")


class ExamGenerationError(HamForgeError):
    """An exam could not be assembled from an otherwise loadable pool."""


class ProgressSaveError(HamForgeError):
    """Persisting a per-question progress record failed."""

    def __init__(self, question_id: str, message: str = "") -> None:
        self.question_id = question_id
        detail = f": {message}" if message else ""
        super().__init__(f"Failed to save progress for question {question_id}{detail}")


class ArchiveError(HamForgeError):
    """Archiving a completed exam attempt failed."""


class SessionNotFoundError(HamForgeError):
    """A referenced exam or practice session does not exist.

    Specialization used by the API layer to answer with a 404.
    """

    def __init__(self, session_id: str, session_type: str = "session") -> None:
        self.session_id = session_id
        self.session_type = session_type
        super().__init__(f"{session_type} '{session_id}' not found")
