"""
Core Domain Models.

Plain dataclass records shared by the mastery, selection, scheduling and
recommendation modules. Records that the engine transitions (MasteryState,
ReviewRecord) are frozen; every update returns a new instance.

Components:
- MasteryState: per (learner, topic) knowledge estimate
- ItemParameters: IRT 3PL parameters for one item
- ReviewRecord: spaced review state for one topic
- MistakePattern / TopicInfo: weighting and curriculum inputs
- ReviewEvent: one entry of a review history
- Recommendation / Rationale: engine output with structured reason codes

Timestamps may arrive naive or aware. Naive values are read as UTC so that
they compare cleanly with the aware "now" the engine uses by default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat a naive timestamp as UTC; aware timestamps pass through."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================


class ReviewQuality(str, Enum):
    """Self-assessed (or inferred) recall quality for a review."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def grade(self) -> int:
        """1-4 numeric grade (Again=1 ... Easy=4)."""
        return _QUALITY_GRADES[self]

    @property
    def is_pass(self) -> bool:
        return self is not ReviewQuality.AGAIN


_QUALITY_GRADES = {
    ReviewQuality.AGAIN: 1,
    ReviewQuality.HARD: 2,
    ReviewQuality.GOOD: 3,
    ReviewQuality.EASY: 4,
}


class RecommendationType(str, Enum):
    """Kind of study action the engine recommends."""

    REVIEW = "review"
    STRENGTHEN = "strengthen"
    NEW_CONTENT = "new_content"
    CHALLENGE = "challenge"
    WARM_UP = "warm_up"
    DEEP_DIVE = "deep_dive"


class Urgency(str, Enum):
    """
    Ordinal urgency of a recommendation.

    LOW < MEDIUM < HIGH < CRITICAL; compare with `rank`.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _URGENCY_RANKS[self]

    @classmethod
    def from_risk(cls, risk: float) -> Urgency:
        """
        Bucket a forgetting risk (or any 0-1 urgency score).

        Args:
            risk: Score between 0 and 1

        Returns:
            LOW below 0.3, MEDIUM below 0.6, HIGH below 0.85, else CRITICAL
        """
        if risk < 0.3:
            return cls.LOW
        elif risk < 0.6:
            return cls.MEDIUM
        elif risk < 0.85:
            return cls.HIGH
        else:
            return cls.CRITICAL


_URGENCY_RANKS = {
    Urgency.LOW: 0,
    Urgency.MEDIUM: 1,
    Urgency.HIGH: 2,
    Urgency.CRITICAL: 3,
}


class FocusMode(str, Enum):
    """Session focus that shifts priority weights."""

    REVIEW = "review"
    LEARN = "learn"
    CHALLENGE = "challenge"
    BALANCED = "balanced"


class ReasonCode(str, Enum):
    """Machine-readable reasons attached to a recommendation."""

    DUE_FOR_REVIEW = "due_for_review"
    OVERDUE = "overdue"
    HIGH_FORGETTING_RISK = "high_forgetting_risk"
    LOW_MASTERY = "low_mastery"
    HIGH_ERROR_RATE = "high_error_rate"
    RECENT_MISTAKES = "recent_mistakes"
    PREREQUISITES_MET = "prerequisites_met"
    NEVER_ATTEMPTED = "never_attempted"
    MASTERED_WITHOUT_CHALLENGE = "mastered_without_challenge"
    NEAR_MASTERY = "near_mastery"
    LOW_RECENT_ACTIVITY = "low_recent_activity"
    UNLOCKS_TOPICS = "unlocks_topics"
    FOCUS_MODE_MATCH = "focus_mode_match"
    CRITICAL_GUARANTEED = "critical_guaranteed"
    TIME_BOXED = "time_boxed"


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class MasteryState:
    """Knowledge estimate for one learner on one topic."""

    topic_id: str
    probability: float
    attempts_total: int = 0
    attempts_correct: int = 0
    last_updated_at: datetime | None = None
    recent_outcomes: tuple[bool, ...] = ()  # Most recent last
    last_difficult_attempt_at: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "last_updated_at", ensure_utc(self.last_updated_at))
        object.__setattr__(
            self, "last_difficult_attempt_at", ensure_utc(self.last_difficult_attempt_at)
        )

    @property
    def accuracy(self) -> float:
        if self.attempts_total == 0:
            return 0.0
        return self.attempts_correct / self.attempts_total

    @property
    def error_rate(self) -> float:
        """Error rate over the recent window, falling back to all attempts."""
        if self.recent_outcomes:
            misses = sum(1 for outcome in self.recent_outcomes if not outcome)
            return misses / len(self.recent_outcomes)
        if self.attempts_total == 0:
            return 0.0
        return 1.0 - self.accuracy

    @property
    def trailing_correct(self) -> int:
        """Length of the current run of correct answers."""
        streak = 0
        for outcome in reversed(self.recent_outcomes):
            if not outcome:
                break
            streak += 1
        return streak


@dataclass(frozen=True)
class ItemParameters:
    """IRT 3PL parameters. Validated by the selector, not on construction."""

    item_id: str
    topic_id: str
    difficulty: float  # b, logit scale
    discrimination: float = 1.0  # a > 0
    guess_floor: float = 0.0  # c in [0, 1)


@dataclass(frozen=True)
class ReviewRecord:
    """Spaced review state; next_due_at is always last_reviewed_at + interval_days."""

    topic_id: str
    interval_days: int
    ease_factor: float
    last_reviewed_at: datetime
    next_due_at: datetime
    consecutive_correct: int = 0

    def __post_init__(self):
        object.__setattr__(self, "last_reviewed_at", ensure_utc(self.last_reviewed_at))
        object.__setattr__(self, "next_due_at", ensure_utc(self.next_due_at))


@dataclass(frozen=True)
class MistakePattern:
    """Recurring error tagged to a concept."""

    concept_tag: str
    frequency: int
    last_occurred: datetime
    topic_id: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "last_occurred", ensure_utc(self.last_occurred))


@dataclass(frozen=True)
class ReviewEvent:
    """One answered review, as kept in a topic's review history."""

    reviewed_at: datetime
    was_correct: bool
    response_time_ms: int = 0
    difficulty: int = 3  # 1-5

    def __post_init__(self):
        object.__setattr__(self, "reviewed_at", ensure_utc(self.reviewed_at))


@dataclass(frozen=True)
class TopicInfo:
    """Curriculum node: a topic and the topics it depends on."""

    topic_id: str
    prerequisites: tuple[str, ...] = ()
    title: str = ""


@dataclass(frozen=True)
class Rationale:
    """Why a recommendation was made, as codes plus the numbers behind them."""

    codes: tuple[ReasonCode, ...] = ()
    mastery: float | None = None
    forgetting_risk: float | None = None
    error_rate: float | None = None
    days_overdue: float | None = None
    unlocks: int = 0
    weak_concepts: tuple[str, ...] = ()

    def with_code(self, code: ReasonCode) -> Rationale:
        if code in self.codes:
            return self
        return Rationale(
            codes=self.codes + (code,),
            mastery=self.mastery,
            forgetting_risk=self.forgetting_risk,
            error_rate=self.error_rate,
            days_overdue=self.days_overdue,
            unlocks=self.unlocks,
            weak_concepts=self.weak_concepts,
        )


@dataclass(frozen=True)
class Recommendation:
    """One prioritized study action."""

    topic_id: str
    type: RecommendationType
    priority: float
    urgency: Urgency
    estimated_minutes: int
    difficulty: int  # 1-5
    rationale: Rationale = field(default_factory=Rationale)
    item_id: str | None = None
