"""Flashcard deck selection — weighted, interleaved card picks.

A deck is built in three steps:

1. every subelement gets a weight from its answer history (weak, rusty and
   unexplored areas weigh more, strong ones less), normalized to sum to 1;
2. the deck's slots are shared out by weight, no category taking more than
   40% of them;
3. each category fills its slots with its most urgent cards (due first,
   then least mastered, then longest unseen, unseen cards last), and the
   result is dealt round-robin across subelements so consecutive cards
   rarely share a topic.

Cards are pool questions; their history comes from the same
``QuestionProgress`` records the scheduler keeps.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Protocol

from models.flashcard import (
    CardResult,
    CategoryPerformance,
    CategoryProgress,
    CategoryWeight,
    FlashcardDeck,
    FlashcardDeckRequest,
    FlashcardSummary,
    ModeRecommendation,
    SessionMode,
)
from models.progress import MasteryStatus, QuestionProgress
from models.question import ExamLevel, Question
from services.progress_store import ProgressStore
from services.question_scheduler import QuestionScheduler
from services.spaced_repetition import is_due, round_half_up

logger = logging.getLogger(__name__)

MAX_CATEGORY_WEIGHT = 0.4  # share of a deck one category may take
MIN_CATEGORY_WEIGHT = 0.05  # below this a category may get no slot
RECENCY_DECAY_RATE = 0.1  # weight boost per day since last studied
RECENCY_MAX_BOOST = 2.0
COLD_START_THRESHOLD = 10  # attempts before the full algorithm applies
EXPLORATION_BONUS = 1.5
RECENT_WINDOW_DAYS = 7
RUSTY_AFTER_DAYS = 7

_STATUS_RANK = {
    MasteryStatus.NEW: 0,
    MasteryStatus.LEARNING: 1,
    MasteryStatus.REVIEW: 2,
    MasteryStatus.MASTERED: 3,
}


class _HasSubelement(Protocol):
    subelement: str


def _days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / (24 * 60 * 60)


# ── Category statistics ──────────────────────────────────────


def build_category_progress(
    pool: Sequence[Question],
    records: Iterable[QuestionProgress],
    now: datetime | None = None,
    window_days: int = RECENT_WINDOW_DAYS,
) -> list[CategoryProgress]:
    """Per-subelement history for every subelement in *pool*.

    "Recent" counts come from records last answered within *window_days*.
    """
    now = now or datetime.now()
    cutoff = now - timedelta(days=window_days)
    subelement_of = {q.id: q.subelement for q in pool}
    categories = {sub: CategoryProgress(category_id=sub) for sub in sorted(set(subelement_of.values()))}

    for record in records:
        sub = subelement_of.get(record.question_id)
        if sub is None:
            continue
        cat = categories[sub]
        cat.total_attempts += record.attempts
        cat.total_correct += record.correct_count
        if record.last_attempt >= cutoff:
            cat.recent_attempts += record.attempts
            cat.recent_correct += record.correct_count
        if cat.last_studied is None or record.last_attempt > cat.last_studied:
            cat.last_studied = record.last_attempt

    for cat in categories.values():
        if cat.total_attempts:
            cat.overall_accuracy = cat.total_correct / cat.total_attempts
            cat.weakness_score = 1 - cat.overall_accuracy
        if cat.recent_attempts:
            cat.recent_accuracy = cat.recent_correct / cat.recent_attempts
    return list(categories.values())


def _default_category_progress(cards: Iterable[_HasSubelement]) -> list[CategoryProgress]:
    subelements = dict.fromkeys(card.subelement for card in cards)
    return [CategoryProgress(category_id=sub) for sub in subelements]


# ── Weights and slots ────────────────────────────────────────


def calculate_category_weights(
    categories: Sequence[CategoryProgress],
    mode: SessionMode = SessionMode.ADAPTIVE,
    now: datetime | None = None,
) -> list[CategoryWeight]:
    """Normalized weights, heaviest first."""
    if not categories:
        return []
    now = now or datetime.now()
    cap = MAX_CATEGORY_WEIGHT * len(categories)

    weights = []
    for cat in categories:
        weight = 1.0
        reason = "normal"

        if mode is SessionMode.ADAPTIVE:
            if cat.recent_attempts > 0:
                weight = 0.5 + (1 - cat.recent_accuracy)
                if cat.recent_accuracy < 0.5:
                    reason = "weak"
                elif cat.recent_accuracy > 0.85:
                    reason = "strong"
                    weight *= 0.7
            else:
                weight = EXPLORATION_BONUS
                reason = "explore"

            if cat.last_studied is not None:
                days = _days_between(cat.last_studied, now)
                weight *= min(1 + days * RECENCY_DECAY_RATE, RECENCY_MAX_BOOST)
                if days > RUSTY_AFTER_DAYS and reason == "normal":
                    reason = "rusty"
        elif mode is SessionMode.REVIEW:
            weight = 1.0 if cat.recent_attempts > 0 else 0.5
        elif mode is SessionMode.EXPLORE:
            unseen = cat.recent_attempts == 0
            weight = 2.0 if unseen else 0.5
            reason = "explore" if unseen else "normal"

        weights.append(CategoryWeight(category_id=cat.category_id, weight=min(weight, cap), reason=reason))

    total = sum(w.weight for w in weights)
    if total > 0:
        for w in weights:
            w.weight /= total

    weights.sort(key=lambda w: w.weight, reverse=True)
    return weights


def allocate_slots(weights: Sequence[CategoryWeight], total_slots: int) -> dict[str, int]:
    """Share *total_slots* out by weight, heaviest category first.

    Slots left over after the proportional pass go one each to weak
    categories.
    """
    slots: dict[str, int] = {}
    remaining = total_slots
    ordered = sorted(weights, key=lambda w: w.weight, reverse=True)
    ceiling = math.ceil(total_slots * MAX_CATEGORY_WEIGHT)

    for w in ordered:
        if remaining <= 0:
            break
        floor = 1 if w.weight > MIN_CATEGORY_WEIGHT else 0
        allocated = min(max(round_half_up(w.weight * total_slots), floor), ceiling, remaining)
        if allocated > 0:
            slots[w.category_id] = allocated
            remaining -= allocated

    for w in ordered:
        if remaining <= 0:
            break
        if w.reason == "weak":
            slots[w.category_id] = slots.get(w.category_id, 0) + 1
            remaining -= 1

    return slots


# ── Card selection ───────────────────────────────────────────


def _card_priority(progress: QuestionProgress | None, now: datetime) -> tuple:
    if progress is None:
        return (True, True, 0, 0.0, datetime.min)
    return (
        False,
        not is_due(progress.next_review, now),
        _STATUS_RANK[progress.status],
        progress.accuracy,
        progress.last_attempt,
    )


def _select_for_slots(
    cards: Sequence[Question],
    slots: dict[str, int],
    progress: dict[str, QuestionProgress],
    now: datetime,
) -> list[Question]:
    selected: list[Question] = []
    used: set[str] = set()
    for category_id, count in slots.items():
        candidates = [
            c for c in cards
            if (c.subelement == category_id or c.group_key == category_id) and c.id not in used
        ]
        candidates.sort(key=lambda c: _card_priority(progress.get(c.id), now))
        for card in candidates[:count]:
            selected.append(card)
            used.add(card.id)
    return selected


def apply_interleaving(cards: Sequence[Question], rng: random.Random | None = None) -> list[Question]:
    """Deal *cards* round-robin across subelements, in a shuffled subelement order.

    Cards within one subelement keep their relative order.
    """
    groups: dict[str, list[Question]] = {}
    for card in cards:
        groups.setdefault(card.subelement, []).append(card)
    if len(groups) <= 1:
        return list(cards)

    order = list(groups)
    (rng or random.Random()).shuffle(order)

    result: list[Question] = []
    depth = max(len(group) for group in groups.values())
    for i in range(depth):
        for sub in order:
            if i < len(groups[sub]):
                result.append(groups[sub][i])
    return result


def measure_interleaving(cards: Sequence[_HasSubelement]) -> float:
    """Share of adjacent pairs whose subelements differ (0 = blocked, 1 = fully mixed)."""
    if len(cards) <= 1:
        return 0.0
    switches = sum(1 for a, b in zip(cards, cards[1:]) if a.subelement != b.subelement)
    return switches / (len(cards) - 1)


def select_cards(
    cards: Sequence[Question],
    progress: dict[str, QuestionProgress],
    categories: Sequence[CategoryProgress],
    count: int,
    mode: SessionMode = SessionMode.ADAPTIVE,
    focus_categories: Sequence[str] | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> FlashcardDeck:
    """Pick up to *count* cards weighted by category history.

    With no category history at all, every subelement present in *cards*
    starts out unexplored.
    """
    now = now or datetime.now()
    categories = list(categories) or _default_category_progress(cards)
    if mode is SessionMode.FOCUS and focus_categories:
        categories = [c for c in categories if c.category_id in focus_categories]

    weights = calculate_category_weights(categories, mode, now)
    slots = allocate_slots(weights, count)
    deck = apply_interleaving(_select_for_slots(cards, slots, progress, now), rng)
    return FlashcardDeck(
        cards=deck,
        category_weights=weights,
        interleaving=measure_interleaving(deck),
    )


# ── Session results ──────────────────────────────────────────


def calculate_session_summary(
    results: Sequence[CardResult],
    cards: Iterable[Question],
    start_time: datetime,
    now: datetime | None = None,
) -> FlashcardSummary:
    """Accuracy, timing and per-group performance for a finished deck."""
    now = now or datetime.now(start_time.tzinfo)
    by_id = {card.id: card for card in cards}
    total = len(results)
    correct = sum(1 for r in results if r.correct)
    time_spent_ms = max(int((now - start_time).total_seconds() * 1000), 0)

    tally: dict[str, list[int]] = {}
    for result in results:
        card = by_id.get(result.card_id)
        if card is None:
            continue
        counts = tally.setdefault(card.group_key, [0, 0])
        counts[0] += int(result.correct)
        counts[1] += 1

    performance = sorted(
        (
            CategoryPerformance(category_id=key, correct=c, total=t, accuracy=c / t)
            for key, (c, t) in tally.items()
        ),
        key=lambda p: p.accuracy,
    )

    return FlashcardSummary(
        total_cards=total,
        accuracy=correct / total if total else 0.0,
        time_spent_ms=time_spent_ms,
        average_time_per_card=time_spent_ms / total if total else 0.0,
        category_performance=performance,
        weakest_category=performance[0].category_id if performance else None,
        strongest_category=performance[-1].category_id if performance else None,
    )


def get_recommended_mode(
    categories: Sequence[CategoryProgress],
    last_session_date: date | str | None,
    now: datetime | None = None,
) -> ModeRecommendation:
    if not categories:
        return ModeRecommendation(mode=SessionMode.EXPLORE, reason="Start by exploring new concepts")

    if sum(c.total_attempts for c in categories) < COLD_START_THRESHOLD:
        return ModeRecommendation(mode=SessionMode.EXPLORE, reason="Continue building your foundation")

    if last_session_date:
        now = now or datetime.now()
        if isinstance(last_session_date, str):
            last_session_date = date.fromisoformat(last_session_date)
        if not isinstance(last_session_date, datetime):
            last_session_date = datetime.combine(last_session_date, datetime.min.time())
        days = _days_between(last_session_date, now)
        if days > RUSTY_AFTER_DAYS:
            return ModeRecommendation(
                mode=SessionMode.REVIEW,
                reason=f"{math.floor(days)} days since last session, time to review!",
            )

    weak = [c for c in categories if c.weakness_score > 0.5]
    if weak:
        plural = "s" if len(weak) > 1 else ""
        return ModeRecommendation(mode=SessionMode.ADAPTIVE, reason=f"Focus on {len(weak)} weak area{plural}")

    if sum(c.recent_accuracy for c in categories) / len(categories) > 0.85:
        return ModeRecommendation(mode=SessionMode.EXPLORE, reason="Great progress! Discover new content")

    return ModeRecommendation(mode=SessionMode.ADAPTIVE, reason="Balanced study based on your performance")


# ── Scheduler-backed entry points ────────────────────────────


async def build_flashcard_deck(
    scheduler: QuestionScheduler,
    request: FlashcardDeckRequest,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> FlashcardDeck:
    """Select a deck from the level's pool and the stored progress records."""
    now = now or datetime.now()
    pool = scheduler.get_question_pool(request.exam_level)
    records = await scheduler.get_pool_progress(request.exam_level)
    deck = select_cards(
        pool,
        {p.question_id: p for p in records},
        build_category_progress(pool, records, now),
        request.count,
        request.mode,
        request.focus_categories,
        now,
        rng,
    )
    logger.info(
        "Flashcard deck for %s: %d cards (%s, interleaving %.2f)",
        request.exam_level.value,
        len(deck.cards),
        request.mode.value,
        deck.interleaving,
    )
    return deck


async def recommend_mode(
    scheduler: QuestionScheduler,
    progress_store: ProgressStore,
    exam_level: ExamLevel,
    now: datetime | None = None,
) -> ModeRecommendation:
    pool = scheduler.get_question_pool(exam_level)
    records = await scheduler.get_pool_progress(exam_level)
    await progress_store.ensure_loaded()
    categories = build_category_progress(pool, records, now)
    return get_recommended_mode(categories, progress_store.last_study_date, now)
