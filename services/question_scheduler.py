"""Question scheduler — picks what to study next and records answers.

Selection for practice follows a fixed precedence:

1. questions due for review, most overdue (relative to interval) first;
2. questions never answered, in pool order;
3. questions seen before but not yet due, shortest interval first.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from datetime import datetime

from errors import ProgressSaveError
from models.progress import (
    MasteryStatus,
    ProgressStats,
    QuestionProgress,
    SubelementProgress,
)
from models.question import ExamLevel, Question
from services.progress_repository import ProgressRepository
from services.question_pool import QuestionPoolProvider
from services.spaced_repetition import (
    calculate_priority,
    get_initial_progress,
    get_mastery_status,
    is_due,
    process_answer,
    update_confidence_history,
)

logger = logging.getLogger(__name__)


class QuestionScheduler:
    """Pool reads combined with the learner's stored progress."""

    def __init__(self, pool: QuestionPoolProvider, repository: ProgressRepository):
        self.pool = pool
        self.repository = repository

    # ── Pool views ───────────────────────────────────────────

    def get_question_pool(self, exam_level: ExamLevel | str) -> list[Question]:
        return self.pool.get_question_pool(exam_level)

    def get_subelements(self, exam_level: ExamLevel | str) -> list[str]:
        return self.pool.get_subelements(exam_level)

    async def _progress_for_pool(self, pool: list[Question]) -> list[QuestionProgress]:
        pool_ids = {q.id for q in pool}
        return [p for p in await self.repository.all() if p.question_id in pool_ids]

    async def get_pool_progress(self, exam_level: ExamLevel | str) -> list[QuestionProgress]:
        """Stored records for questions in the level's pool."""
        return await self._progress_for_pool(self.get_question_pool(exam_level))

    @staticmethod
    def _in_order(pool: list[Question], ids: Iterable[str]) -> list[Question]:
        by_id = {q.id: q for q in pool}
        return [by_id[i] for i in ids if i in by_id]

    # ── Selection ────────────────────────────────────────────

    async def get_due_questions(
        self,
        exam_level: ExamLevel | str,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[Question]:
        """Due questions, highest priority first."""
        now = now or datetime.now()
        pool = self.get_question_pool(exam_level)
        if not pool:
            return []

        due = [p for p in await self._progress_for_pool(pool) if is_due(p.next_review, now)]
        due.sort(key=lambda p: calculate_priority(p.next_review, p.interval, now), reverse=True)
        return self._in_order(pool, (p.question_id for p in due))[:limit]

    async def get_new_questions(self, exam_level: ExamLevel | str, limit: int = 10) -> list[Question]:
        """Never-answered questions in pool order."""
        pool = self.get_question_pool(exam_level)
        if not pool:
            return []

        seen = {p.question_id for p in await self.repository.all()}
        return [q for q in pool if q.id not in seen][:limit]

    async def get_review_questions(
        self,
        exam_level: ExamLevel | str,
        limit: int,
        exclude_ids: Iterable[str] = (),
        now: datetime | None = None,
    ) -> list[Question]:
        """Seen but not yet due, shorter intervals first."""
        now = now or datetime.now()
        pool = self.get_question_pool(exam_level)
        excluded = set(exclude_ids)

        upcoming = [
            p
            for p in await self._progress_for_pool(pool)
            if p.next_review > now and p.question_id not in excluded
        ]
        upcoming.sort(key=lambda p: p.interval)
        return self._in_order(pool, (p.question_id for p in upcoming))[:limit]

    async def get_practice_questions(
        self,
        exam_level: ExamLevel | str,
        count: int = 10,
        now: datetime | None = None,
    ) -> list[Question]:
        """Up to *count* questions: due, then new, then early review."""
        result = await self.get_due_questions(exam_level, count, now)
        if len(result) >= count:
            return result[:count]

        result.extend(await self.get_new_questions(exam_level, count - len(result)))
        if len(result) >= count:
            return result[:count]

        result.extend(
            await self.get_review_questions(
                exam_level, count - len(result), {q.id for q in result}, now
            )
        )
        return result

    async def get_questions_by_subelement(
        self,
        exam_level: ExamLevel | str,
        subelement: str,
        limit: int | None = None,
    ) -> list[Question]:
        filtered = [q for q in self.get_question_pool(exam_level) if q.subelement == subelement]
        return filtered[:limit] if limit else filtered

    async def get_questions_by_status(
        self,
        exam_level: ExamLevel | str,
        status: MasteryStatus | str,
    ) -> list[Question]:
        """Pool questions whose stored status is *status*.

        ``new`` means "never answered", so it is derived from the absence
        of a record rather than from stored statuses.
        """
        status = MasteryStatus(status)
        pool = self.get_question_pool(exam_level)
        if status is MasteryStatus.NEW:
            return await self.get_new_questions(exam_level, len(pool))

        matching = {
            p.question_id for p in await self._progress_for_pool(pool) if p.status is status
        }
        return [q for q in pool if q.id in matching]

    def get_random_question(
        self,
        exam_level: ExamLevel | str,
        exclude_ids: Iterable[str] | None = None,
        rng: random.Random | None = None,
    ) -> Question | None:
        excluded = set(exclude_ids or ())
        candidates = [q for q in self.get_question_pool(exam_level) if q.id not in excluded]
        if not candidates:
            return None
        return (rng or random).choice(candidates)

    # ── Progress writes ──────────────────────────────────────

    async def save_question_progress(
        self,
        question_id: str,
        correct: bool,
        confidence: int | None = None,
        now: datetime | None = None,
    ) -> QuestionProgress:
        """Create or update the record for one answered question.

        Raises:
            ProgressSaveError: the repository read or write failed.
        """
        now = now or datetime.now()
        try:
            existing = await self.repository.get(question_id)
            if existing is not None:
                result = process_answer(correct, existing, confidence, now=now)
                correct_count = existing.correct_count + (1 if correct else 0)
                attempts = existing.attempts + 1
                progress = existing.model_copy(
                    update={
                        "attempts": attempts,
                        "correct_count": correct_count,
                        "last_attempt": now,
                        "next_review": result.next_review,
                        "ease_factor": result.ease_factor,
                        "interval": result.interval,
                        "status": get_mastery_status(result.interval, correct_count, attempts),
                    }
                )
            else:
                result = process_answer(correct, None, confidence, now=now)
                initial = get_initial_progress()
                progress = QuestionProgress(
                    question_id=question_id,
                    attempts=1,
                    correct_count=1 if correct else 0,
                    last_attempt=now,
                    next_review=result.next_review,
                    ease_factor=result.ease_factor,
                    interval=result.interval,
                    status=MasteryStatus.LEARNING if correct else initial["status"],
                )

            if confidence is not None:
                progress.confidence_history = update_confidence_history(
                    progress.confidence_history, confidence
                )

            await self.repository.put(progress)
        except Exception as exc:
            logger.exception("Failed to save progress for question %s", question_id)
            raise ProgressSaveError(question_id, str(exc)) from exc

        return progress

    async def reset_progress(self, exam_level: ExamLevel | str) -> int:
        """Delete every record belonging to *exam_level*'s pool."""
        pool_ids = [q.id for q in self.get_question_pool(exam_level)]
        removed = await self.repository.delete_many(pool_ids)
        logger.info("Reset %d progress records for %s", removed, ExamLevel(exam_level).value)
        return removed

    # ── Progress reads ───────────────────────────────────────

    async def get_question_progress(self, question_id: str) -> QuestionProgress | None:
        return await self.repository.get(question_id)

    async def get_progress_stats(
        self, exam_level: ExamLevel | str, now: datetime | None = None
    ) -> ProgressStats:
        now = now or datetime.now()
        pool = self.get_question_pool(exam_level)
        relevant = await self._progress_for_pool(pool)

        counts = {status: 0 for status in MasteryStatus}
        total_attempts = 0
        total_correct = 0
        due_count = 0
        for progress in relevant:
            counts[progress.status] += 1
            total_attempts += progress.attempts
            total_correct += progress.correct_count
            if is_due(progress.next_review, now):
                due_count += 1

        return ProgressStats(
            total=len(pool),
            new=len(pool) - len(relevant),
            learning=counts[MasteryStatus.LEARNING],
            review=counts[MasteryStatus.REVIEW],
            mastered=counts[MasteryStatus.MASTERED],
            accuracy=total_correct / total_attempts if total_attempts else 0.0,
            due_count=due_count,
        )

    async def get_progress_by_subelement(
        self, exam_level: ExamLevel | str
    ) -> dict[str, SubelementProgress]:
        pool = self.get_question_pool(exam_level)
        progress_map = {p.question_id: p for p in await self.repository.all()}

        by_subelement: dict[str, list[Question]] = {}
        for question in pool:
            by_subelement.setdefault(question.subelement, []).append(question)

        results: dict[str, SubelementProgress] = {}
        for subelement, questions in by_subelement.items():
            mastered = attempts = correct = 0
            for question in questions:
                progress = progress_map.get(question.id)
                if progress is None:
                    continue
                if progress.status is MasteryStatus.MASTERED:
                    mastered += 1
                attempts += progress.attempts
                correct += progress.correct_count

            results[subelement] = SubelementProgress(
                total=len(questions),
                mastered=mastered,
                accuracy=correct / attempts if attempts else 0.0,
            )
        return results


# ── Module-level Singleton ───────────────────────────────────

_scheduler: QuestionScheduler | None = None


def get_question_scheduler() -> QuestionScheduler:
    """Scheduler bound to the configured pool provider and progress repository."""
    global _scheduler
    if _scheduler is None:
        from services.progress_repository import get_progress_repository
        from services.question_pool import get_question_pool_provider

        _scheduler = QuestionScheduler(get_question_pool_provider(), get_progress_repository())
    return _scheduler
