"""
Plan and progress summaries.

Read-only aggregations over the engine's outputs and a learner's mastery
states: session time estimates, weak-area detection, review history
statistics and a 0-100 study readiness score with its risk bucket.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from tutor_engine.core.models import (
    MasteryState,
    MistakePattern,
    Recommendation,
    RecommendationType,
    ReviewEvent,
    ensure_utc,
)
from tutor_engine.study.mastery_calculator import MasteryCalculator


class ReadinessRisk(str, Enum):
    """How far a learner is from being ready, bucketed from the 0-100 score."""

    LOW = "low"  # 80+
    MEDIUM = "medium"  # 60-79
    HIGH = "high"  # 40-59
    CRITICAL = "critical"  # below 40

    @classmethod
    def from_score(cls, score: float) -> ReadinessRisk:
        if score >= 80:
            return cls.LOW
        elif score >= 60:
            return cls.MEDIUM
        elif score >= 40:
            return cls.HIGH
        else:
            return cls.CRITICAL


class RetentionTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class WeaknessSeverity(str, Enum):
    NONE = "none"
    MILD = "mild"  # 1-2 weak topics
    MODERATE = "moderate"  # 3-4
    SIGNIFICANT = "significant"  # 5+

    @classmethod
    def from_count(cls, count: int) -> WeaknessSeverity:
        if count == 0:
            return cls.NONE
        elif count <= 2:
            return cls.MILD
        elif count <= 4:
            return cls.MODERATE
        else:
            return cls.SIGNIFICANT


@dataclass(frozen=True)
class SessionEstimate:
    total_minutes: int
    item_count: int
    minutes_by_type: dict[RecommendationType, int] = field(default_factory=dict)


@dataclass(frozen=True)
class WeakTopic:
    topic_id: str
    error_rate: float
    concept_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReadinessReport:
    score: int
    risk: ReadinessRisk


@dataclass(frozen=True)
class ReviewStats:
    """Summary of a review history."""

    total_reviews: int = 0
    accuracy: float = 0.0
    average_response_ms: int = 0
    current_streak: int = 0
    best_streak: int = 0
    trend: RetentionTrend = RetentionTrend.STABLE


@dataclass(frozen=True)
class WeakAreasSummary:
    topics: tuple[WeakTopic, ...]
    severity: WeaknessSeverity

    @property
    def count(self) -> int:
        return len(self.topics)


# Weak-area detection thresholds
WEAK_MIN_ATTEMPTS = 5
WEAK_ERROR_RATE = 0.35

# Practice within this window counts as recent for readiness
READINESS_RECENT_DAYS = 7

# Retention trend: last N reviews vs the N before, with a dead zone
TREND_WINDOW = 7
TREND_MARGIN = 0.1


def session_estimate(plan: Iterable[Recommendation]) -> SessionEstimate:
    """Total time and per-type breakdown for a plan."""
    by_type: dict[RecommendationType, int] = {}
    count = 0
    for rec in plan:
        by_type[rec.type] = by_type.get(rec.type, 0) + rec.estimated_minutes
        count += 1
    return SessionEstimate(
        total_minutes=sum(by_type.values()),
        item_count=count,
        minutes_by_type=by_type,
    )


def weak_areas(
    states: Iterable[MasteryState],
    patterns: Iterable[MistakePattern] = (),
) -> WeakAreasSummary:
    """
    Topics with enough attempts and a high error rate, worst first.

    Args:
        states: Mastery states to inspect
        patterns: Mistake patterns; tags are attached to matching topics

    Returns:
        WeakAreasSummary with severity bucketed by topic count
    """
    tags: dict[str, list[MistakePattern]] = {}
    for pattern in patterns:
        if pattern.topic_id is not None:
            tags.setdefault(pattern.topic_id, []).append(pattern)

    weak = []
    for state in states:
        if state.attempts_total < WEAK_MIN_ATTEMPTS or state.error_rate <= WEAK_ERROR_RATE:
            continue
        topic_patterns = sorted(tags.get(state.topic_id, []), key=lambda p: -p.frequency)
        weak.append(
            WeakTopic(
                topic_id=state.topic_id,
                error_rate=state.error_rate,
                concept_tags=tuple(p.concept_tag for p in topic_patterns),
            )
        )

    weak.sort(key=lambda w: (-w.error_rate, w.topic_id))
    return WeakAreasSummary(topics=tuple(weak), severity=WeaknessSeverity.from_count(len(weak)))


def study_readiness(
    states: Sequence[MasteryState],
    now: datetime,
    calculator: MasteryCalculator | None = None,
) -> int:
    """
    Readiness score 0-100.

    - up to 60 points for the average mastery level
    - up to 20 points for an even spread of levels
    - up to 20 points for the share of topics practiced this week
    """
    if not states:
        return 0
    calculator = calculator or MasteryCalculator()

    ranks = [calculator.level_for_state(s).rank for s in states]
    mean = sum(ranks) / len(ranks)
    spread = math.sqrt(sum((r - mean) ** 2 for r in ranks) / len(ranks))

    cutoff = ensure_utc(now) - timedelta(days=READINESS_RECENT_DAYS)
    recent = sum(
        1 for s in states if s.last_updated_at is not None and s.last_updated_at >= cutoff
    )

    score = mean * 12 + max(0.0, 20 - spread * 5) + recent / len(states) * 20
    return min(100, round(score))


def assess_readiness(
    states: Sequence[MasteryState],
    now: datetime,
    calculator: MasteryCalculator | None = None,
) -> ReadinessReport:
    """Readiness score with its risk bucket; no topics at all is CRITICAL."""
    score = study_readiness(states, now, calculator)
    return ReadinessReport(score=score, risk=ReadinessRisk.from_score(score))


def review_stats(history: Iterable[ReviewEvent]) -> ReviewStats:
    """
    Accuracy, streaks and retention trend over a review history.

    Events are ordered by time before counting. The trend compares the last
    TREND_WINDOW reviews with the TREND_WINDOW before them and stays STABLE
    until both windows are full.
    """
    events = sorted(history, key=lambda e: e.reviewed_at)
    if not events:
        return ReviewStats()

    correct = sum(1 for e in events if e.was_correct)

    best = run = 0
    for event in events:
        run = run + 1 if event.was_correct else 0
        best = max(best, run)
    # run now holds the streak ending at the latest review

    trend = RetentionTrend.STABLE
    if len(events) >= 2 * TREND_WINDOW:
        recent = events[-TREND_WINDOW:]
        previous = events[-2 * TREND_WINDOW : -TREND_WINDOW]
        recent_acc = sum(1 for e in recent if e.was_correct) / TREND_WINDOW
        previous_acc = sum(1 for e in previous if e.was_correct) / TREND_WINDOW
        if recent_acc > previous_acc + TREND_MARGIN:
            trend = RetentionTrend.IMPROVING
        elif recent_acc < previous_acc - TREND_MARGIN:
            trend = RetentionTrend.DECLINING

    return ReviewStats(
        total_reviews=len(events),
        accuracy=round(correct / len(events), 2),
        average_response_ms=round(sum(e.response_time_ms for e in events) / len(events)),
        current_streak=run,
        best_streak=best,
        trend=trend,
    )
