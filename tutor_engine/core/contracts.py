"""
Request/response contracts for the grading and planning entry points.

Pydantic models validate shape at the boundary (types, required fields,
non-negative budgets). Domain range checks (probabilities, IRT parameters)
stay with the engine components and raise TutorEngineError subclasses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from tutor_engine.core.models import (
    FocusMode,
    ItemParameters,
    MasteryState,
    MistakePattern,
    ReviewRecord,
    TopicInfo,
    ensure_utc,
)


class GradeAction(str, Enum):
    """What the session should do after a graded attempt."""

    CONTINUE = "continue"
    SCAFFOLD = "scaffold"  # Step back to guided work
    RETRY = "retry"  # Try a similar item again


class FeedbackCode(str, Enum):
    CORRECT = "correct"
    CORRECT_MASTERED = "correct_mastered"
    INCORRECT_NEEDS_SCAFFOLD = "incorrect_needs_scaffold"
    INCORRECT_RETRY = "incorrect_retry"


class AttemptEvent(BaseModel):
    """One answered question."""

    topic_id: str
    is_correct: bool
    timestamp: datetime
    difficulty_level: int = Field(default=3, ge=1, le=5)
    question_type: str | None = None  # multiple_choice, numeric, proof_step

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class GradeAttemptRequest(BaseModel):
    attempt: AttemptEvent
    current_mastery_state: MasteryState | None = None


class GradeAttemptResponse(BaseModel):
    new_mastery: float
    predicted_success: float
    is_mastered: bool
    action: GradeAction
    feedback_code: FeedbackCode
    state: MasteryState


class BuildPlanRequest(BaseModel):
    """Everything the recommendation engine needs for one learner."""

    learner_id: str
    mastery_states: list[MasteryState] = Field(default_factory=list)
    review_records: list[ReviewRecord] = Field(default_factory=list)
    item_catalog: list[ItemParameters] = Field(default_factory=list)
    session_budget_minutes: int = Field(ge=0)
    focus_mode: FocusMode = FocusMode.BALANCED

    # Optional enrichment
    topics: list[TopicInfo] = Field(default_factory=list)
    mistake_patterns: list[MistakePattern] = Field(default_factory=list)
    attempts_last_24h: int | None = Field(default=None, ge=0)
    exposure_history: dict[str, datetime] | set[str] = Field(default_factory=dict)

    @field_validator("exposure_history")
    @classmethod
    def _exposure_utc(
        cls, value: dict[str, datetime] | set[str]
    ) -> dict[str, datetime] | set[str]:
        if isinstance(value, dict):
            return {item_id: ensure_utc(seen_at) for item_id, seen_at in value.items()}
        return value
