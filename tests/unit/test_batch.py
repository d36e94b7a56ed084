"""
Unit tests for concurrent plan building across learners.
"""

from tutor_engine.adaptive.batch import build_plans
from tutor_engine.core.contracts import BuildPlanRequest
from tutor_engine.core.errors import InvalidProbability
from tutor_engine.core.models import RecommendationType, TopicInfo


class TestBuildPlans:
    def test_failure_isolated_to_one_learner(self, make_state, now):
        requests = [
            BuildPlanRequest(
                learner_id="ok",
                topics=[TopicInfo("addition")],
                session_budget_minutes=30,
            ),
            BuildPlanRequest(
                learner_id="broken",
                mastery_states=[make_state("addition", 2.0)],
                session_budget_minutes=30,
            ),
        ]
        outcomes = build_plans(requests, now=now, max_workers=2)

        assert [o.learner_id for o in outcomes] == ["ok", "broken"]
        assert outcomes[0].ok
        assert outcomes[0].plan[0].type is RecommendationType.NEW_CONTENT
        assert not outcomes[1].ok
        assert isinstance(outcomes[1].error, InvalidProbability)

    def test_requests_for_same_learner_keep_order(self, now):
        requests = [
            BuildPlanRequest(learner_id="amy", topics=[TopicInfo("a")], session_budget_minutes=30),
            BuildPlanRequest(learner_id="ben", topics=[TopicInfo("b")], session_budget_minutes=30),
            BuildPlanRequest(learner_id="amy", topics=[TopicInfo("c")], session_budget_minutes=30),
        ]
        outcomes = build_plans(requests, now=now)

        assert [o.learner_id for o in outcomes] == ["amy", "ben", "amy"]
        assert [o.plan[0].topic_id for o in outcomes] == ["a", "b", "c"]

    def test_empty_batch(self):
        assert build_plans([]) == []
