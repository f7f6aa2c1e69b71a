"""Question pool models.

A ``Question`` is an immutable content unit identified by
``<subelement><group><NN>`` (``T1A01`` → subelement ``T1``, group ``A``).
The pool JSON files deserialize straight into ``QuestionPool``.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import ConfigDict, Field, model_validator

from models.base import CamelModel

QUESTION_ID_RE = re.compile(r"^(?P<subelement>[A-Z]\d)(?P<group>[A-Z])(?P<number>\d{2})$")
GROUP_KEY_RE = re.compile(r"^[A-Z]\d[A-Z]$")


class ExamLevel(str, Enum):
    """License class."""

    TECHNICIAN = "technician"
    GENERAL = "general"
    EXTRA = "extra"


class Question(CamelModel):
    """A single multiple-choice pool question."""

    model_config = ConfigDict(frozen=True)

    id: str
    subelement: str
    group: str
    question: str
    answers: list[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(ge=0, le=3)
    refs: str = ""
    figure: str | None = None
    explanation: str | None = None

    @model_validator(mode="after")
    def _id_matches_group(self) -> Question:
        match = QUESTION_ID_RE.match(self.id)
        if not match:
            raise ValueError(f"question id '{self.id}' is not <subelement><group><NN>")
        if match["subelement"] != self.subelement or match["group"] != self.group:
            raise ValueError(
                f"question id '{self.id}' does not match subelement "
                f"'{self.subelement}' / group '{self.group}'"
            )
        return self

    @property
    def group_key(self) -> str:
        """Diversity unit used by exam generation, e.g. ``T1A``."""
        return f"{self.subelement}{self.group}"


class QuestionPool(CamelModel):
    """On-disk pool file for one license level."""

    exam_level: ExamLevel
    effective_from: str = ""  # e.g. "2022-07-01"
    effective_to: str = ""  # e.g. "2026-06-30"
    questions: list[Question] = Field(default_factory=list)


def is_group_key(value: str) -> bool:
    """True when *value* looks like ``T1A``."""
    return bool(GROUP_KEY_RE.match(value or ""))
