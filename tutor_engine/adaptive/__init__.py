"""
Adaptive Module - grading and study plans.

Components:
- grading: grade_attempt contract and ordered attempt replay
- recommendation_engine: ranked, budget-packed recommendations
- batch: concurrent planning across learners
- insights: session estimates, weak areas, review stats, readiness
"""

from tutor_engine.adaptive.batch import PlanOutcome, build_plans
from tutor_engine.adaptive.grading import apply_attempts, grade_attempt
from tutor_engine.adaptive.insights import (
    ReadinessRisk,
    assess_readiness,
    review_stats,
    session_estimate,
    study_readiness,
    weak_areas,
)
from tutor_engine.adaptive.recommendation_engine import PlanConfig, RecommendationEngine

__all__ = [
    "PlanConfig",
    "PlanOutcome",
    "ReadinessRisk",
    "RecommendationEngine",
    "apply_attempts",
    "assess_readiness",
    "build_plans",
    "grade_attempt",
    "review_stats",
    "session_estimate",
    "study_readiness",
    "weak_areas",
]
