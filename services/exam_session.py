"""Exam session controller — one timed, resumable exam attempt.

Lifecycle: ``loading → active → complete``.

- ``start()`` restores a persisted, unfinished session for the same level
  instead of generating a new exam.
- Every mutation is written back to the session store, so a restarted
  worker resumes at the same question with the same answers, flags and
  remaining time.
- ``submit_exam()`` runs at most once per session no matter how many
  callers race it (manual submit, double submit, timer expiry).

All mutating methods are coroutines meant to run on a single event loop.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime

from models.exam import (
    ExamAnswer,
    ExamAnswerRecord,
    ExamQuestion,
    ExamQuestionView,
    ExamResult,
    GeneratedExam,
)
from models.question import ExamLevel
from models.session import ExamSessionSnapshot, ExamSessionState
from services.exam_generator import calculate_exam_result, generate_exam
from services.exam_storage import ExamAttemptStore
from services.question_pool import QuestionPoolProvider
from services.question_scheduler import QuestionScheduler
from services.session_store import EXAM_SESSION_STORAGE_KEY, SessionStore

logger = logging.getLogger(__name__)

UNANSWERED = -1


class ExamSession:
    """Controller for a single exam attempt."""

    def __init__(
        self,
        exam_level: ExamLevel | str,
        *,
        pool: QuestionPoolProvider,
        session_store: SessionStore,
        attempt_store: ExamAttemptStore,
        scheduler: QuestionScheduler,
        storage_key: str = EXAM_SESSION_STORAGE_KEY,
    ):
        self.session_id = uuid.uuid4().hex
        self.exam_level = ExamLevel(exam_level)
        self.pool = pool
        self.session_store = session_store
        self.attempt_store = attempt_store
        self.scheduler = scheduler
        self.storage_key = storage_key

        self.exam: GeneratedExam | None = None
        self.current_index = 0
        self.answers: dict[str, int] = {}
        self.flagged_questions: set[int] = set()
        self.is_complete = False
        self.is_loading = True
        self.error: str | None = None
        self.result: ExamResult | None = None
        self.saved_exam_id: str | None = None
        self.time_remaining = 0
        self.start_time: datetime | None = None
        self.restored = False

        self._submitting = False
        self._timer: asyncio.Task | None = None

    # ── Initialization ───────────────────────────────────────

    async def start(self) -> None:
        """Restore an unfinished session for this level, or generate a new exam."""
        if await self._restore():
            return

        try:
            exam = generate_exam(self.exam_level, self.pool)
        except Exception as exc:
            logger.warning("Exam generation failed for %s: %s", self.exam_level.value, exc)
            self.exam = None
            self.error = str(exc) or "Failed to generate exam"
            self.is_loading = False
            return

        self.exam = exam
        self.current_index = 0
        self.answers = {}
        self.flagged_questions = set()
        self.time_remaining = self._time_limit_seconds()
        self.start_time = datetime.now()
        self.is_loading = False
        await self._persist()

    async def _restore(self) -> bool:
        try:
            snapshot = await self.session_store.get(self.storage_key)
        except Exception:
            logger.exception("Failed to read persisted exam session")
            return False

        if snapshot is None or snapshot.exam is None:
            return False
        if snapshot.exam.exam_level is not self.exam_level or snapshot.is_complete:
            return False

        self.exam = snapshot.exam
        self.current_index = snapshot.current_index
        self.answers = dict(snapshot.answers)
        self.flagged_questions = set(snapshot.flagged_questions)
        self.is_complete = False
        self.result = snapshot.result
        self.saved_exam_id = snapshot.saved_exam_id
        self.time_remaining = snapshot.time_remaining
        self.start_time = snapshot.start_time
        self.is_loading = False
        self.restored = True
        logger.info("Restored exam session %s at question %d", self.exam.id, self.current_index)
        return True

    # ── Persistence ──────────────────────────────────────────

    def to_snapshot(self) -> ExamSessionSnapshot:
        return ExamSessionSnapshot(
            exam=self.exam,
            exam_level=self.exam_level,
            current_index=self.current_index,
            answers=list(self.answers.items()),
            flagged_questions=sorted(self.flagged_questions),
            is_complete=self.is_complete,
            result=self.result,
            saved_exam_id=self.saved_exam_id,
            time_remaining=self.time_remaining,
            start_time=self.start_time,
        )

    async def _persist(self) -> None:
        if self.exam is None or self.is_loading:
            return
        try:
            await self.session_store.save(self.storage_key, self.to_snapshot())
        except Exception:
            logger.exception("Failed to persist exam session %s", self.exam.id)

    # ── Views ────────────────────────────────────────────────

    @property
    def total_questions(self) -> int:
        return len(self.exam.questions) if self.exam else 0

    @property
    def current_question(self) -> ExamQuestion | None:
        if self.exam is None or not 0 <= self.current_index < len(self.exam.questions):
            return None
        return self.exam.questions[self.current_index]

    @property
    def selected_answer(self) -> int | None:
        question = self.current_question
        return self.answers.get(question.id) if question else None

    @property
    def answered_indices(self) -> set[int]:
        if self.exam is None:
            return set()
        return {i for i, q in enumerate(self.exam.questions) if q.id in self.answers}

    @property
    def time_spent(self) -> int:
        """Seconds elapsed on the countdown."""
        return self._time_limit_seconds() - self.time_remaining

    def _time_limit_seconds(self) -> int:
        if self.exam is None:
            return 0
        return max(1, self.exam.time_limit) * 60

    @property
    def _active(self) -> bool:
        return self.exam is not None and not self.is_loading and not self.is_complete

    def state(self) -> ExamSessionState:
        question = self.current_question
        return ExamSessionState(
            session_id=self.session_id,
            exam_id=self.exam.id if self.exam else None,
            exam_level=self.exam_level,
            total_questions=self.total_questions,
            current_index=self.current_index,
            current_question=ExamQuestionView.of(question, reveal=self.is_complete) if question else None,
            selected_answer=self.selected_answer,
            answered_indices=sorted(self.answered_indices),
            flagged_questions=sorted(self.flagged_questions),
            is_loading=self.is_loading,
            is_complete=self.is_complete,
            error=self.error,
            result=self.result,
            saved_exam_id=self.saved_exam_id,
            time_remaining=self.time_remaining,
            start_time=self.start_time,
        )

    # ── Answering ────────────────────────────────────────────

    async def select_answer(self, answer_index: int) -> None:
        """Record a selection for the current question; the last one wins."""
        if not self._active:
            return
        question = self.current_question
        if question is None:
            return
        self.answers[question.id] = answer_index
        await self._persist()

    async def toggle_flag(self) -> None:
        if not self._active:
            return
        if self.current_index in self.flagged_questions:
            self.flagged_questions.discard(self.current_index)
        else:
            self.flagged_questions.add(self.current_index)
        await self._persist()

    # ── Navigation ───────────────────────────────────────────

    async def go_to_question(self, index: int) -> None:
        if self.exam is None:
            return
        last = max(0, len(self.exam.questions) - 1)
        self.current_index = max(0, min(index, last))
        await self._persist()

    async def next_question(self) -> None:
        if self.exam is None or self.current_index >= len(self.exam.questions) - 1:
            return
        self.current_index += 1
        await self._persist()

    async def prev_question(self) -> None:
        if self.exam is None or self.current_index <= 0:
            return
        self.current_index -= 1
        await self._persist()

    # ── Timer ────────────────────────────────────────────────

    async def tick(self) -> None:
        """Advance the countdown by one second; submits when it runs out."""
        if not self._active or self._submitting:
            return

        if self.time_remaining <= 1:
            self.time_remaining = 0
            logger.info("Time expired for exam %s, auto-submitting", self.exam.id)
            await self.submit_exam()
            return

        self.time_remaining -= 1
        await self._persist()

    def start_timer(self, interval: float = 1.0) -> asyncio.Task:
        """Run ``tick()`` every *interval* seconds until the exam completes."""
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._run_timer(interval))
        return self._timer

    async def _run_timer(self, interval: float) -> None:
        while self._active:
            await asyncio.sleep(interval)
            await self.tick()

    def stop_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    # ── Submission ───────────────────────────────────────────

    async def submit_exam(self) -> ExamResult | None:
        """Score, archive and report the attempt.

        Only the first call does any work; later or concurrent calls return
        the existing result.  Storage failures are logged, never raised.
        """
        if self._submitting or self.is_complete or self.exam is None or self.is_loading:
            return self.result
        self._submitting = True

        exam = self.exam
        records: list[ExamAnswerRecord] = []
        archived: list[ExamAnswer] = []
        for question in exam.questions:
            selected = self.answers.get(question.id, UNANSWERED)
            correct = selected == question.correct_answer
            records.append(ExamAnswerRecord(question_id=question.id, correct=correct))
            archived.append(
                ExamAnswer(question_id=question.id, selected_answer=selected, correct=correct)
            )

        result = calculate_exam_result(exam.questions, records)
        self.result = result
        self.is_complete = True
        if self._timer is not None and self._timer is not asyncio.current_task():
            self.stop_timer()
        await self._persist()

        try:
            self.saved_exam_id = await self.attempt_store.save_exam_attempt(
                self.exam_level, result.score, result.passed, self.time_spent, archived
            )
        except Exception:
            logger.exception("Failed to archive exam attempt %s", exam.id)

        for record in records:
            try:
                await self.scheduler.save_question_progress(record.question_id, record.correct)
            except Exception:
                logger.exception("Failed to save progress for question %s", record.question_id)

        try:
            await self.session_store.delete(self.storage_key)
        except Exception:
            logger.exception("Failed to clear persisted exam session %s", exam.id)

        logger.info(
            "Exam %s submitted: %d/%d (%s)",
            exam.id,
            result.correct_count,
            result.total_questions,
            "passed" if result.passed else "failed",
        )
        return result
