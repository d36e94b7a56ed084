"""
Integration Tests for the Study Flow.

Tests the core learning path:
1. Attempts are graded and folded into mastery
2. Reviews are scheduled and recorded
3. A session plan is built from the resulting state
4. The plan is summarized for display
"""

from datetime import timedelta

import pytest

from tutor_engine.adaptive.batch import build_plans
from tutor_engine.adaptive.grading import grade_attempt
from tutor_engine.adaptive.insights import session_estimate
from tutor_engine.adaptive.recommendation_engine import RecommendationEngine
from tutor_engine.core.contracts import AttemptEvent, BuildPlanRequest, GradeAttemptRequest
from tutor_engine.core.models import (
    ReasonCode,
    RecommendationType,
    ReviewQuality,
    TopicInfo,
    Urgency,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def studied(now, scheduler):
    """Three correct answers on fractions ten days ago, then one on-time review."""
    start = now - timedelta(days=10)

    state = None
    for minute in range(3):
        response = grade_attempt(
            GradeAttemptRequest(
                attempt=AttemptEvent(
                    topic_id="fractions",
                    is_correct=True,
                    timestamp=start + timedelta(minutes=minute),
                ),
                current_mastery_state=state,
            )
        )
        state = response.state

    record = scheduler.new_record("fractions", start)
    quality = scheduler.grade_response(is_correct=True, response_time_ms=12000)
    record = scheduler.record_review(record, quality)
    return state, record, response


class TestStudyFlow:
    """End-to-end: grade, schedule, plan."""

    def test_attempts_reach_mastery(self, studied):
        state, _, last_response = studied
        assert state.attempts_total == 3
        assert state.probability == pytest.approx(0.9431, abs=1e-3)
        assert last_response.is_mastered

    def test_review_scheduled_from_good_answer(self, studied, now):
        _, record, _ = studied
        assert record.interval_days == 3
        assert record.consecutive_correct == 1
        assert record.next_due_at == now - timedelta(days=6)

    def test_plan_reviews_and_unlocks_next_topic(self, studied, now):
        state, record, _ = studied
        request = BuildPlanRequest(
            learner_id="learner-1",
            mastery_states=[state],
            review_records=[record],
            topics=[TopicInfo("fractions"), TopicInfo("decimals", ("fractions",))],
            session_budget_minutes=60,
        )
        plan = RecommendationEngine().build_plan(request, now=now)
        topics = {rec.topic_id: rec for rec in plan}

        review = topics["fractions"]
        assert review.type is RecommendationType.REVIEW
        assert review.urgency is Urgency.CRITICAL
        assert ReasonCode.OVERDUE in review.rationale.codes

        assert topics["decimals"].type is RecommendationType.NEW_CONTENT
        assert ReasonCode.PREREQUISITES_MET in topics["decimals"].rationale.codes

        estimate = session_estimate(plan)
        assert estimate.item_count == 2
        assert estimate.total_minutes <= 60

    def test_review_then_plan_again(self, studied, scheduler, now):
        state, record, _ = studied
        record = scheduler.record_review(record, ReviewQuality.GOOD, reviewed_at=now)
        request = BuildPlanRequest(
            learner_id="learner-1",
            mastery_states=[state],
            review_records=[record],
            session_budget_minutes=20,
        )
        plan = RecommendationEngine().build_plan(request, now=now)
        assert all(rec.type is not RecommendationType.REVIEW for rec in plan)

    def test_batch_matches_single_plan(self, studied, now):
        state, record, _ = studied
        request = BuildPlanRequest(
            learner_id="learner-1",
            mastery_states=[state],
            review_records=[record],
            session_budget_minutes=45,
        )
        single = RecommendationEngine().build_plan(request, now=now)
        (outcome,) = build_plans([request], now=now)
        assert outcome.ok
        assert list(outcome.plan) == single
