"""
Core Module - Shared domain models and interfaces.

Components:
- models: Domain records and enums (MasteryState, ReviewRecord, Recommendation)
- mastery: Bayesian Knowledge Tracing (MasteryModel, BKTParams)
- contracts: Pydantic request/response models for grading and planning
- errors: TutorEngineError taxonomy

Design Principle:
Domain modules (learning/, study/, adaptive/) import shared concepts from
here rather than redefining them.
"""

from tutor_engine.core.errors import (
    InvalidParameters,
    InvalidProbability,
    InvalidQuality,
    NoEligibleItems,
    TopicMismatch,
    TutorEngineError,
)
from tutor_engine.core.mastery import BKTParams, MasteryModel
from tutor_engine.core.models import (
    FocusMode,
    ItemParameters,
    MasteryState,
    MistakePattern,
    Rationale,
    ReasonCode,
    Recommendation,
    RecommendationType,
    ReviewQuality,
    ReviewEvent,
    ReviewRecord,
    TopicInfo,
    Urgency,
    ensure_utc,
)

__all__ = [
    # Errors
    "TutorEngineError",
    "InvalidProbability",
    "InvalidParameters",
    "InvalidQuality",
    "NoEligibleItems",
    "TopicMismatch",
    # Mastery
    "BKTParams",
    "MasteryModel",
    # Models
    "FocusMode",
    "ItemParameters",
    "MasteryState",
    "MistakePattern",
    "Rationale",
    "ReasonCode",
    "Recommendation",
    "RecommendationType",
    "ReviewQuality",
    "ReviewEvent",
    "ReviewRecord",
    "TopicInfo",
    "Urgency",
    "ensure_utc",
]
