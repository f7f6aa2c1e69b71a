"""Practice session controller — untimed drill over a filtered question set."""

from __future__ import annotations

import logging
import random
import uuid

from models.question import Question
from models.session import PracticeAnswer, PracticeSessionState, SessionConfig, SessionStats
from services.progress_store import ProgressStore
from services.question_scheduler import QuestionScheduler
from services.spaced_repetition import round_half_up

logger = logging.getLogger(__name__)


def _dedupe(questions: list[Question]) -> list[Question]:
    seen: set[str] = set()
    unique = []
    for question in questions:
        if question.id not in seen:
            seen.add(question.id)
            unique.append(question)
    return unique


class PracticeSession:
    """Controller for one practice run.

    State is transient: nothing here survives a restart, but every answer
    is reported to the scheduler so spaced-repetition progress does.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        scheduler: QuestionScheduler,
        progress_store: ProgressStore,
        rng: random.Random | None = None,
    ):
        self.session_id = uuid.uuid4().hex
        self.config = config
        self.scheduler = scheduler
        self.progress_store = progress_store
        self._rng = rng or random.Random()

        self.questions: list[Question] = []
        self.current_index = 0
        self.answers: list[PracticeAnswer] = []
        self.is_complete = False
        self.is_loading = True
        self.error: str | None = None

    async def _by_status(self) -> list[Question]:
        questions: list[Question] = []
        for status in self.config.status:
            questions.extend(
                await self.scheduler.get_questions_by_status(self.config.exam_level, status)
            )
        return _dedupe(questions)

    async def _resolve_questions(self) -> list[Question]:
        config = self.config
        level = config.exam_level

        if config.subelements:
            questions: list[Question] = []
            for subelement in config.subelements:
                questions.extend(await self.scheduler.get_questions_by_subelement(level, subelement))
            if config.groups:
                groups = set(config.groups)
                questions = [q for q in questions if q.group_key in groups]
            if config.status:
                status_ids = {q.id for q in await self._by_status()}
                questions = [q for q in questions if q.id in status_ids]
        elif config.status:
            questions = await self._by_status()
        else:
            questions = await self.scheduler.get_practice_questions(level, config.question_count)

        if config.flagged_only:
            questions = [q for q in questions if self.progress_store.is_flagged(q.id)]

        return questions

    async def load(self) -> None:
        """Resolve the working question set.

        An empty result is a valid, zero-question session; only a failed
        fetch sets ``error``.
        """
        self.is_loading = True
        self.error = None
        await self.progress_store.ensure_loaded()
        try:
            questions = await self._resolve_questions()
        except Exception as exc:
            logger.warning("Failed to load practice questions: %s", exc)
            self.questions = []
            self.error = str(exc) or "Failed to load questions"
            self.is_loading = False
            return

        self._rng.shuffle(questions)
        count = self.config.question_count
        if 0 < count < len(questions):
            questions = questions[:count]

        await self.progress_store.record_study_day()
        self.questions = questions
        self.is_loading = False
        logger.info(
            "Practice session %s loaded %d %s questions",
            self.session_id,
            len(questions),
            self.config.exam_level.value,
        )

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    async def submit_answer(
        self, selected_index: int, correct: bool, confidence: int | None = None
    ) -> PracticeAnswer | None:
        """Record an answer for the current question.

        The local record is kept even when the progress write fails.
        """
        question = self.current_question
        if question is None or self.is_complete:
            return None

        answer = PracticeAnswer(
            question_id=question.id,
            selected_answer=selected_index,
            correct=correct,
            confidence=confidence,
        )
        self.answers.append(answer)
        await self.progress_store.increment_answered(correct)

        try:
            await self.scheduler.save_question_progress(question.id, correct, confidence)
        except Exception:
            logger.exception("Failed to save practice progress for %s", question.id)

        return answer

    def next_question(self) -> None:
        """Advance; moving past the last question completes the session."""
        if self.is_complete:
            return
        if self.current_index + 1 >= len(self.questions):
            self.is_complete = True
            return
        self.current_index += 1

    @property
    def stats(self) -> SessionStats:
        answered = len(self.answers)
        correct = sum(1 for a in self.answers if a.correct)
        return SessionStats(
            total_questions=len(self.questions),
            answered=answered,
            correct=correct,
            incorrect=answered - correct,
            accuracy=round_half_up(correct / answered * 100) if answered else 0,
        )

    def state(self) -> PracticeSessionState:
        return PracticeSessionState(
            session_id=self.session_id,
            config=self.config,
            questions=self.questions,
            current_index=self.current_index,
            current_question=self.current_question,
            answers=list(self.answers),
            is_complete=self.is_complete,
            is_loading=self.is_loading,
            error=self.error,
            stats=self.stats,
        )
