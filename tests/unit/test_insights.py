"""
Unit tests for plan and progress summaries.
"""

from datetime import timedelta

import pytest

from tutor_engine.adaptive.insights import (
    ReadinessRisk,
    RetentionTrend,
    WeaknessSeverity,
    assess_readiness,
    review_stats,
    session_estimate,
    study_readiness,
    weak_areas,
)
from tutor_engine.core.models import (
    MistakePattern,
    Recommendation,
    RecommendationType,
    ReviewEvent,
    Urgency,
)


class TestSessionEstimate:
    def test_totals_by_type(self):
        plan = [
            Recommendation("a", RecommendationType.REVIEW, 0.9, Urgency.HIGH, 12, 2),
            Recommendation("b", RecommendationType.REVIEW, 0.8, Urgency.LOW, 14, 2),
            Recommendation("c", RecommendationType.WARM_UP, 0.3, Urgency.LOW, 5, 2),
        ]
        estimate = session_estimate(plan)
        assert estimate.total_minutes == 31
        assert estimate.item_count == 3
        assert estimate.minutes_by_type[RecommendationType.REVIEW] == 26

    def test_empty_plan(self):
        assert session_estimate([]).total_minutes == 0


class TestWeakAreas:
    def test_detects_and_orders_weak_topics(self, make_state, now):
        states = [
            make_state("ratios", 0.3, total=10, correct=4),
            make_state("limits", 0.2, total=10, correct=2),
            make_state("fresh", 0.2, total=3, correct=0),
            make_state("solid", 0.8, total=10, correct=9),
        ]
        patterns = [MistakePattern("sign-error", 3, now, topic_id="limits")]
        summary = weak_areas(states, patterns)

        assert [t.topic_id for t in summary.topics] == ["limits", "ratios"]
        assert summary.topics[0].concept_tags == ("sign-error",)
        assert summary.severity is WeaknessSeverity.MILD
        assert summary.count == 2

    def test_severity_buckets(self):
        assert WeaknessSeverity.from_count(0) is WeaknessSeverity.NONE
        assert WeaknessSeverity.from_count(3) is WeaknessSeverity.MODERATE
        assert WeaknessSeverity.from_count(7) is WeaknessSeverity.SIGNIFICANT


class TestStudyReadiness:
    def test_no_topics(self, now):
        assert study_readiness([], now) == 0

    def test_all_mastered_and_recent(self, make_state, now):
        states = [
            make_state(
                f"t{i}",
                0.95,
                total=20,
                correct=20,
                last_difficult_attempt_at=now,
                last_updated_at=now - timedelta(days=1),
            )
            for i in range(3)
        ]
        assert study_readiness(states, now) == 100

    def test_stale_beginner(self, make_state, now):
        state = make_state("t", 0.2, total=2, correct=1, last_updated_at=now - timedelta(days=30))
        # FAMILIAR (rank 1) * 12 + 20 for no spread + 0 recent
        assert study_readiness([state], now) == 32

    def test_naive_reference_time(self, make_state, now):
        state = make_state("t", 0.2, total=2, correct=1)
        assert study_readiness([state], now.replace(tzinfo=None)) == 52


class TestReadinessRisk:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (100, ReadinessRisk.LOW),
            (80, ReadinessRisk.LOW),
            (79, ReadinessRisk.MEDIUM),
            (60, ReadinessRisk.MEDIUM),
            (40, ReadinessRisk.HIGH),
            (39, ReadinessRisk.CRITICAL),
            (0, ReadinessRisk.CRITICAL),
        ],
    )
    def test_buckets(self, score, expected):
        assert ReadinessRisk.from_score(score) is expected

    def test_no_topics_is_critical(self, now):
        report = assess_readiness([], now)
        assert report.score == 0
        assert report.risk is ReadinessRisk.CRITICAL

    def test_stale_beginner_is_critical(self, make_state, now):
        state = make_state("t", 0.2, total=2, correct=1, last_updated_at=now - timedelta(days=30))
        assert assess_readiness([state], now).risk is ReadinessRisk.CRITICAL


def reviews(now, outcomes, response_ms=1000):
    """Review events one day apart, oldest first, ending at `now`."""
    count = len(outcomes)
    return [
        ReviewEvent(now - timedelta(days=count - i), outcome, response_ms)
        for i, outcome in enumerate(outcomes)
    ]


class TestReviewStats:
    def test_empty_history(self):
        stats = review_stats([])
        assert stats.total_reviews == 0
        assert stats.trend is RetentionTrend.STABLE

    def test_accuracy_and_streaks(self, now):
        history = reviews(now, [True, True, True, False, True, True])
        stats = review_stats(history)
        assert stats.total_reviews == 6
        assert stats.accuracy == 0.83
        assert stats.current_streak == 2
        assert stats.best_streak == 3
        assert stats.average_response_ms == 1000

    def test_current_streak_zero_after_miss(self, now):
        assert review_stats(reviews(now, [True, False])).current_streak == 0

    def test_order_independent(self, now):
        history = reviews(now, [True, False, True, True])
        assert review_stats(list(reversed(history))) == review_stats(history)

    def test_improving_trend(self, now):
        history = reviews(now, [False] * 4 + [True] * 3 + [True] * 7)
        assert review_stats(history).trend is RetentionTrend.IMPROVING

    def test_declining_trend(self, now):
        history = reviews(now, [True] * 7 + [True] * 5 + [False] * 2)
        assert review_stats(history).trend is RetentionTrend.DECLINING

    def test_equal_windows_are_stable(self, now):
        history = reviews(now, [True, False, True, True, False, True, True] * 2)
        assert review_stats(history).trend is RetentionTrend.STABLE

    def test_too_short_for_trend(self, now):
        history = reviews(now, [False] * 6 + [True] * 7)
        assert review_stats(history).trend is RetentionTrend.STABLE


class TestPackageExports:
    def test_insights_exported_from_adaptive(self):
        import tutor_engine.adaptive as adaptive

        assert adaptive.session_estimate is session_estimate
        assert adaptive.review_stats is review_stats
        for name in ("weak_areas", "study_readiness", "assess_readiness", "ReadinessRisk"):
            assert name in adaptive.__all__
