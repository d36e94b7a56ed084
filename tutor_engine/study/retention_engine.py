"""
Retention Engine - Review scheduling before forgetting occurs.

Implements an SM-2 style interval/ease state machine and a forgetting-curve
risk estimate:

1. Interval growth - each successful review multiplies the interval by the
   ease factor (HARD grows slower, EASY faster)
2. Ease adaptation - failures and hard recalls lower ease, easy recalls raise it
3. Forgetting risk - 1 - exp(-elapsed / (interval * stability)), where
   stability grows with the current streak of correct reviews

FSRSScheduler is an alternative that tracks memory stability and difficulty
(FSRS-4.5) and derives intervals from a requested retention rate.

Every transition returns a new ReviewRecord; inputs are never mutated.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from loguru import logger

from tutor_engine.core.errors import InvalidQuality
from tutor_engine.core.models import ReviewQuality, ReviewRecord, ensure_utc

if TYPE_CHECKING:
    from config import Settings


# =============================================================================
# SCHEDULING CONSTANTS
# =============================================================================

SECONDS_PER_DAY = 86400.0

# Ease adjustments per quality
EASE_DELTAS = {
    ReviewQuality.AGAIN: -0.20,
    ReviewQuality.HARD: -0.15,
    ReviewQuality.GOOD: 0.0,
    ReviewQuality.EASY: 0.15,
}

# Grade mapping for numeric callers
GRADE_AGAIN = 1
GRADE_HARD = 2
GRADE_GOOD = 3
GRADE_EASY = 4

_GRADE_TO_QUALITY = {
    GRADE_AGAIN: ReviewQuality.AGAIN,
    GRADE_HARD: ReviewQuality.HARD,
    GRADE_GOOD: ReviewQuality.GOOD,
    GRADE_EASY: ReviewQuality.EASY,
}


@dataclass(frozen=True)
class SchedulerConfig:
    """Review scheduling parameters."""

    initial_interval_days: int = 1
    initial_ease: float = 2.5
    min_ease: float = 1.3
    max_interval_days: int = 180
    hard_factor: float = 1.2
    easy_bonus: float = 1.3
    stability_step: float = 0.3

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SchedulerConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_review_config())


def coerce_quality(quality: ReviewQuality | str | int) -> ReviewQuality:
    """
    Accept a ReviewQuality, its name/value ("good", "GOOD"), or a 1-4 grade.

    Raises:
        InvalidQuality: For anything else
    """
    if isinstance(quality, ReviewQuality):
        return quality
    if isinstance(quality, bool):
        raise InvalidQuality(quality)
    if isinstance(quality, int):
        if quality in _GRADE_TO_QUALITY:
            return _GRADE_TO_QUALITY[quality]
        raise InvalidQuality(quality)
    if isinstance(quality, str):
        try:
            return ReviewQuality(quality.strip().lower())
        except ValueError:
            raise InvalidQuality(quality) from None
    raise InvalidQuality(quality)


def _days_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / SECONDS_PER_DAY


class ReviewScheduler:
    """
    Interval and ease scheduler with forgetting-risk estimates.

    Holds only configuration; all state lives in ReviewRecord values.
    """

    def __init__(self, config: SchedulerConfig | None = None):
        self.config = config or SchedulerConfig()

    def new_record(self, topic_id: str, created_at: datetime) -> ReviewRecord:
        """First record for a topic: due after the initial interval."""
        created_at = ensure_utc(created_at)
        interval = self.config.initial_interval_days
        return ReviewRecord(
            topic_id=topic_id,
            interval_days=interval,
            ease_factor=self.config.initial_ease,
            last_reviewed_at=created_at,
            next_due_at=created_at + timedelta(days=interval),
            consecutive_correct=0,
        )

    def grade_response(
        self,
        is_correct: bool,
        response_time_ms: int,
        expected_time_ms: int = 15000,
        hints_used: int = 0,
    ) -> ReviewQuality:
        """
        Infer review quality from an answered question.

        Args:
            is_correct: Whether the answer was correct
            response_time_ms: Time taken to answer
            expected_time_ms: Typical time for this item
            hints_used: Number of hints revealed

        Returns:
            Quality to feed into record_review
        """
        if not is_correct:
            return ReviewQuality.AGAIN
        if hints_used > 0:
            return ReviewQuality.HARD

        time_ratio = response_time_ms / expected_time_ms if expected_time_ms > 0 else 1.0
        if time_ratio < 0.5:
            return ReviewQuality.EASY
        elif time_ratio < 1.5:
            return ReviewQuality.GOOD
        else:
            return ReviewQuality.HARD

    def record_review(
        self,
        record: ReviewRecord,
        quality: ReviewQuality | str | int,
        reviewed_at: datetime | None = None,
    ) -> ReviewRecord:
        """
        Apply one review outcome.

        Args:
            record: Current review state (left untouched)
            quality: AGAIN, HARD, GOOD or EASY
            reviewed_at: When the review happened; defaults to the record's
                due time, i.e. an on-schedule review

        Returns:
            New ReviewRecord with updated interval, ease and due date

        Raises:
            InvalidQuality: If quality is not a known grade
        """
        quality = coerce_quality(quality)
        cfg = self.config
        reviewed_at = ensure_utc(reviewed_at) or record.next_due_at

        ease = record.ease_factor
        if quality is ReviewQuality.AGAIN:
            interval = cfg.initial_interval_days
            streak = 0
        else:
            if quality is ReviewQuality.HARD:
                growth = record.interval_days * cfg.hard_factor
            elif quality is ReviewQuality.GOOD:
                growth = record.interval_days * ease
            else:
                growth = record.interval_days * ease * cfg.easy_bonus
            # Round first so 4 * 2.5 stays 10, not 10.000000001 -> 11
            interval = math.ceil(round(growth, 6))
            streak = record.consecutive_correct + 1

        interval = max(1, min(cfg.max_interval_days, interval))
        new_ease = round(max(cfg.min_ease, ease + EASE_DELTAS[quality]), 4)

        return replace(
            record,
            interval_days=interval,
            ease_factor=new_ease,
            last_reviewed_at=reviewed_at,
            next_due_at=reviewed_at + timedelta(days=interval),
            consecutive_correct=streak,
        )

    def stability_factor(self, record: ReviewRecord) -> float:
        return 1.0 + self.config.stability_step * record.consecutive_correct

    def forgetting_risk(self, record: ReviewRecord, now: datetime) -> float:
        """
        Probability the topic has been forgotten by `now`.

        Returns 0.0 for a review in the future relative to `now`.
        """
        elapsed = _days_between(record.last_reviewed_at, now)
        if elapsed <= 0:
            return 0.0
        scale = max(record.interval_days, 1) * self.stability_factor(record)
        return min(1.0, max(0.0, 1.0 - math.exp(-elapsed / scale)))

    def days_overdue(self, record: ReviewRecord, now: datetime) -> float:
        """Days past the due time (0.0 if not yet due)."""
        return max(0.0, _days_between(record.next_due_at, now))

    def topics_due_for_review(
        self, records: Iterable[ReviewRecord], now: datetime
    ) -> DueReviews:
        """
        Due records, most at-risk first.

        The result is lazy and can be iterated more than once; each pass
        re-evaluates the records against `now`.
        """
        return DueReviews(self, records, now)

    def study_load(
        self, records: Iterable[ReviewRecord], start: date, days: int = 7
    ) -> dict[date, int]:
        """Count of reviews falling due on each of the next `days` days."""
        load = {start + timedelta(days=i): 0 for i in range(days)}
        for record in records:
            due = record.next_due_at.date()
            if due < start:
                due = start  # Overdue reviews land on the first day
            if due in load:
                load[due] += 1
        return load


class DueReviews:
    """Restartable, lazily ordered view over due review records."""

    def __init__(
        self,
        scheduler: ReviewScheduler,
        records: Iterable[ReviewRecord],
        now: datetime,
    ):
        self._scheduler = scheduler
        self._records = tuple(records)
        self._now = ensure_utc(now)

    def __iter__(self) -> Iterator[ReviewRecord]:
        now = self._now
        due = [
            (self._scheduler.forgetting_risk(record, now), record)
            for record in self._records
            if record.next_due_at <= now
        ]
        due.sort(key=lambda pair: (-pair[0], pair[1].next_due_at))
        logger.debug("{} of {} topics due for review", len(due), len(self._records))
        for _, record in due:
            yield record


# =============================================================================
# FSRS SCHEDULER
# =============================================================================

# FSRS-4.5 default weights (can be personalized)
FSRS_WEIGHTS: tuple[float, ...] = (
    0.4,    # w0: initial stability for Again
    0.6,    # w1: initial stability for Hard
    2.4,    # w2: initial stability for Good
    5.8,    # w3: initial stability for Easy
    4.93,   # w4: initial difficulty for Good
    0.94,   # w5: initial difficulty step per grade
    0.86,   # w6: difficulty step per review
    0.01,   # w7: mean reversion (unused by this variant)
    1.49,   # w8: stability growth
    0.14,   # w9: stability saturation
    0.94,   # w10: retrievability gain
    2.18,   # w11: post-lapse stability
    0.05,   # w12: post-lapse difficulty exponent
    0.34,   # w13: post-lapse stability exponent
    1.26,   # w14: post-lapse retrievability gain
    0.29,   # w15: hard penalty
    2.61,   # w16: easy bonus
)

FSRS_MIN_DIFFICULTY = 1.0
FSRS_MAX_DIFFICULTY = 10.0


@dataclass(frozen=True)
class FSRSConfig:
    """FSRS scheduling parameters."""

    weights: tuple[float, ...] = FSRS_WEIGHTS
    request_retention: float = 0.90  # Target 90% recall at the due date
    max_interval_days: int = 365

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> FSRSConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_fsrs_config())


@dataclass(frozen=True)
class FSRSState:
    """Memory state for one topic under FSRS."""

    topic_id: str
    stability: float  # Days until recall drops to 90%
    difficulty: float  # 1 (easy) to 10 (hard)
    reps: int = 0
    lapses: int = 0
    last_reviewed_at: datetime | None = None
    next_due_at: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "last_reviewed_at", ensure_utc(self.last_reviewed_at))
        object.__setattr__(self, "next_due_at", ensure_utc(self.next_due_at))


class FSRSScheduler:
    """
    FSRS-4.5 Spaced Repetition Scheduler.

    Alternative to ReviewScheduler that tracks stability and difficulty
    instead of interval and ease. Calculates intervals from memory state and
    the desired retention rate. Stateless, like ReviewScheduler.
    """

    def __init__(self, config: FSRSConfig | None = None):
        self.config = config or FSRSConfig()
        self.w = self.config.weights

    def new_state(self, topic_id: str) -> FSRSState:
        """Unreviewed state; the first review sets stability and difficulty."""
        return FSRSState(topic_id=topic_id, stability=0.0, difficulty=self.w[4])

    def retrievability(self, state: FSRSState, now: datetime) -> float:
        """Probability of recall at `now`: (1 + t / (9 S))^-1."""
        if state.last_reviewed_at is None or state.stability <= 0:
            return 0.0
        elapsed = max(0.0, _days_between(state.last_reviewed_at, now))
        return 1.0 / (1.0 + elapsed / (9.0 * state.stability))

    def next_interval(self, stability: float) -> int:
        """Days until recall falls to the requested retention."""
        interval = 9.0 * stability * (1.0 / self.config.request_retention - 1.0)
        return max(1, min(self.config.max_interval_days, round(interval)))

    def review(
        self,
        state: FSRSState,
        quality: ReviewQuality | str | int,
        reviewed_at: datetime | None = None,
    ) -> FSRSState:
        """
        Process a review and return the new memory state.

        Args:
            state: Current memory state (left untouched)
            quality: AGAIN, HARD, GOOD or EASY
            reviewed_at: When the review happened; defaults to the state's
                due time, or now (UTC) for a first review

        Returns:
            New FSRSState with updated stability, difficulty and due date

        Raises:
            InvalidQuality: If quality is not a known grade
        """
        quality = coerce_quality(quality)
        grade = quality.grade
        reviewed_at = (
            ensure_utc(reviewed_at) or state.next_due_at or datetime.now(timezone.utc)
        )

        lapses = state.lapses
        if state.reps == 0 or state.last_reviewed_at is None:
            stability = self._initial_stability(grade)
            difficulty = self._initial_difficulty(grade)
        else:
            r = self.retrievability(state, reviewed_at)
            if quality is ReviewQuality.AGAIN:
                lapses += 1
                stability = self._next_forget_stability(state.difficulty, state.stability, r)
            else:
                stability = self._next_recall_stability(
                    state.difficulty, state.stability, r, quality
                )
            difficulty = self._next_difficulty(state.difficulty, grade)

        interval = self.next_interval(stability)
        logger.debug(
            "FSRS review {}: S={:.2f} D={:.2f} -> {} days",
            state.topic_id,
            stability,
            difficulty,
            interval,
        )
        return replace(
            state,
            stability=stability,
            difficulty=difficulty,
            reps=state.reps + 1,
            lapses=lapses,
            last_reviewed_at=reviewed_at,
            next_due_at=reviewed_at + timedelta(days=interval),
        )

    def _initial_stability(self, grade: int) -> float:
        return self.w[grade - 1]

    def _initial_difficulty(self, grade: int) -> float:
        return self._clamp_difficulty(self.w[4] - (grade - 3) * self.w[5])

    def _next_difficulty(self, d: float, grade: int) -> float:
        return self._clamp_difficulty(d - self.w[6] * (grade - 3))

    def _next_recall_stability(
        self, d: float, s: float, r: float, quality: ReviewQuality
    ) -> float:
        """Calculate new stability after successful recall."""
        w = self.w
        hard_penalty = w[15] if quality is ReviewQuality.HARD else 1.0
        easy_bonus = w[16] if quality is ReviewQuality.EASY else 1.0
        new_s = s * (
            1
            + math.exp(w[8])
            * (11 - d)
            * math.pow(s, -w[9])
            * (math.exp((1 - r) * w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return min(float(self.config.max_interval_days), max(s, new_s))

    def _next_forget_stability(self, d: float, s: float, r: float) -> float:
        """Calculate new stability after forgetting; never above the old one."""
        w = self.w
        new_s = (
            w[11]
            * math.pow(d, -w[12])
            * (math.pow(s + 1, w[13]) - 1)
            * math.exp((1 - r) * w[14])
        )
        return min(s, new_s)

    @staticmethod
    def _clamp_difficulty(d: float) -> float:
        return max(FSRS_MIN_DIFFICULTY, min(FSRS_MAX_DIFFICULTY, d))
