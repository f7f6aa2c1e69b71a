"""SM-2 spaced repetition.

Based on https://super-memory.com/english/ol/sm2.htm with two deviations:

- a failed recall keeps the ease factor instead of recomputing it, so a
  question is not penalized twice (interval reset *and* ease drop);
- ``process_answer`` folds a 1-5 self-reported confidence into the result,
  rewarding confident correct answers and penalizing confident mistakes.

Quality ratings:
    0 - complete blackout
    1 - incorrect, but the correct answer was remembered on sight
    2 - incorrect, but the correct answer seemed easy to recall
    3 - correct with serious difficulty
    4 - correct after hesitation
    5 - perfect response

Multiple choice maps a correct answer to 4 and a wrong one to 2.

All functions are pure; ``now`` can be injected for deterministic tests.
Dates are naive local datetimes, and review dates are normalized to
00:00:00.000 of their day.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from models.progress import MasteryStatus, SM2Input, SM2Result

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
DEFAULT_CONFIDENCE = 3
MAX_CONFIDENCE_HISTORY = 10

CORRECT_QUALITY = 4
INCORRECT_QUALITY = 2

REVIEW_INTERVAL_DAYS = 7
MASTERED_INTERVAL_DAYS = 21
MASTERY_ACCURACY = 0.8

_SECONDS_PER_DAY = 24 * 60 * 60


def round_half_up(value: float) -> int:
    """Round .5 upwards (``round()`` would round half to even)."""
    return math.floor(value + 0.5)


def start_of_day(day: date | datetime) -> datetime:
    if isinstance(day, datetime):
        day = day.date()
    return datetime(day.year, day.month, day.day)


def next_review_date(interval: int, now: datetime | None = None) -> datetime:
    """Start of the day *interval* days after *now*."""
    now = now or datetime.now()
    return start_of_day(now + timedelta(days=interval))


def _status_from_interval(interval: int) -> MasteryStatus:
    if interval >= MASTERED_INTERVAL_DAYS:
        return MasteryStatus.MASTERED
    if interval >= REVIEW_INTERVAL_DAYS:
        return MasteryStatus.REVIEW
    return MasteryStatus.LEARNING


def calculate_sm2(params: SM2Input, now: datetime | None = None) -> SM2Result:
    """Compute the next interval, ease factor and review date.

    Args:
        params: Recall quality plus the current scheduling state.
        now: Reference time for the review date (defaults to now).
    """
    quality = params.quality
    ease_factor = params.ease_factor

    if quality >= 3:
        if params.repetitions == 0:
            interval = 1
        elif params.repetitions == 1:
            interval = 6
        else:
            interval = round_half_up(params.interval * ease_factor)

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        miss = 5 - quality
        ease_factor = max(ease_factor + (0.1 - miss * (0.08 + miss * 0.02)), MIN_EASE_FACTOR)
        repetitions = params.repetitions + 1
    else:
        interval = 1
        repetitions = 0

    return SM2Result(
        ease_factor=ease_factor,
        interval=interval,
        next_review=next_review_date(interval, now),
        status=_status_from_interval(interval),
        repetitions=repetitions,
    )


@dataclass(frozen=True)
class ConfidenceAdjustment:
    ease_factor_delta: float = 0.0
    interval_multiplier: float = 1.0


def confidence_adjustment(confidence: int, correct: bool) -> ConfidenceAdjustment:
    """Translate a 1-5 confidence rating into ease/interval tweaks.

    Correct and confident (4-5): small ease bonus, slightly longer interval.
    Correct but unsure (1-2): treated as a lucky guess, ease and interval shrink.
    Wrong and confident (4-5): overconfidence, extra ease penalty.
    Wrong and unsure (1-3), or neutral (3): no adjustment.
    """
    offset = confidence - DEFAULT_CONFIDENCE

    if correct:
        if offset >= 1:
            # 4: +0.02 / x1.05, 5: +0.04 / x1.10
            return ConfidenceAdjustment(offset * 0.02, 1 + offset * 0.05)
        if offset <= -1:
            # 2: -0.02 / x0.85, 1: -0.04 / x0.70
            return ConfidenceAdjustment(offset * 0.02, 1 + offset * 0.15)
    elif offset >= 1:
        # 4: -0.05, 5: -0.10
        return ConfidenceAdjustment(-offset * 0.05, 1.0)

    return ConfidenceAdjustment()


def _clamp_confidence(confidence: float | None) -> int:
    if confidence is None:
        return DEFAULT_CONFIDENCE
    return max(1, min(5, round_half_up(confidence)))


def estimate_repetitions(progress: Any | None) -> int:
    """Consecutive successes implied by the stored interval."""
    if progress is None:
        return 0
    if progress.interval >= 6:
        return 2
    if progress.interval >= 1:
        return 1
    return 0


def process_answer(
    correct: bool,
    progress: Any | None = None,
    confidence: float | None = DEFAULT_CONFIDENCE,
    now: datetime | None = None,
) -> SM2Result:
    """Schedule a multiple-choice answer.

    Args:
        correct: Whether the selected answer was right.
        progress: Existing record (anything with ``ease_factor`` and
            ``interval``), or None for a first answer.
        confidence: 1-5 rating; rounded and clamped, defaults to 3.
        now: Reference time for the review date.
    """
    clamped = _clamp_confidence(confidence)

    base = calculate_sm2(
        SM2Input(
            quality=CORRECT_QUALITY if correct else INCORRECT_QUALITY,
            repetitions=estimate_repetitions(progress),
            ease_factor=progress.ease_factor if progress is not None else DEFAULT_EASE_FACTOR,
            interval=progress.interval if progress is not None else 0,
        ),
        now=now,
    )

    adjustment = confidence_adjustment(clamped, correct)
    ease_factor = max(MIN_EASE_FACTOR, base.ease_factor + adjustment.ease_factor_delta)
    interval = max(1, round_half_up(base.interval * adjustment.interval_multiplier))

    return base.model_copy(
        update={
            "ease_factor": ease_factor,
            "interval": interval,
            "next_review": next_review_date(interval, now),
        }
    )


def get_mastery_status(interval: int, correct_count: int, attempts: int) -> MasteryStatus:
    """Bucket a question by interval and lifetime accuracy.

    ``mastered`` needs both a 21+ day interval and strictly more than 80%
    accuracy; exactly 80% stays in ``review``.
    """
    if attempts == 0:
        return MasteryStatus.NEW

    accuracy = correct_count / attempts
    if interval >= MASTERED_INTERVAL_DAYS and accuracy > MASTERY_ACCURACY:
        return MasteryStatus.MASTERED
    if interval >= REVIEW_INTERVAL_DAYS:
        return MasteryStatus.REVIEW
    return MasteryStatus.LEARNING


def is_due(next_review: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.now()
    return now >= next_review


def calculate_priority(next_review: datetime, interval: int, now: datetime | None = None) -> float:
    """Signed review urgency.

    Days overdue divided by the interval: an item one day late on a 1-day
    interval outranks one a day late on a 30-day interval. Negative values
    mean the item is not due yet.
    """
    now = now or datetime.now()
    days_overdue = (now - next_review).total_seconds() / _SECONDS_PER_DAY
    return days_overdue / max(interval, 1)


def update_confidence_history(history: list[int] | None, confidence: int) -> list[int]:
    """Append a rating, keeping only the newest ``MAX_CONFIDENCE_HISTORY``."""
    updated = [*(history or []), confidence]
    return updated[-MAX_CONFIDENCE_HISTORY:]


def get_average_confidence(history: list[int] | None) -> float | None:
    if not history:
        return None
    return sum(history) / len(history)


def get_initial_progress() -> dict[str, Any]:
    """Defaults for a question that has never been answered."""
    return {
        "ease_factor": DEFAULT_EASE_FACTOR,
        "interval": 0,
        "status": MasteryStatus.NEW,
        "attempts": 0,
        "correct_count": 0,
    }
