"""
Attempt Grading.

Turns one answered question into an updated mastery estimate and a session
action:

- continue: answer was correct
- scaffold: answer was wrong and mastery was already low (< 0.4), so step
  back to guided work
- retry: answer was wrong but the learner is usually right here; serve a
  similar item again
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from tutor_engine.core.contracts import (
    AttemptEvent,
    FeedbackCode,
    GradeAction,
    GradeAttemptRequest,
    GradeAttemptResponse,
)
from tutor_engine.core.errors import TopicMismatch
from tutor_engine.core.mastery import DEFAULT_MASTERY_THRESHOLD, MasteryModel
from tutor_engine.core.models import MasteryState

# Below this prior mastery an incorrect answer triggers scaffolding
SCAFFOLD_THRESHOLD = 0.4


def decide_action(
    is_correct: bool, prior_mastery: float
) -> tuple[GradeAction, FeedbackCode]:
    """Session action for an attempt outcome (ignores mastered feedback)."""
    if is_correct:
        return GradeAction.CONTINUE, FeedbackCode.CORRECT
    if prior_mastery < SCAFFOLD_THRESHOLD:
        return GradeAction.SCAFFOLD, FeedbackCode.INCORRECT_NEEDS_SCAFFOLD
    return GradeAction.RETRY, FeedbackCode.INCORRECT_RETRY


def grade_attempt(
    request: GradeAttemptRequest,
    model: MasteryModel | None = None,
    mastery_threshold: float = DEFAULT_MASTERY_THRESHOLD,
    window: int = 10,
) -> GradeAttemptResponse:
    """
    Grade one attempt against the learner's current mastery state.

    Args:
        request: Attempt plus the current state (None for a first attempt)
        model: BKT model to use (default parameters if omitted)
        mastery_threshold: Probability counted as mastered
        window: Recent outcomes kept on the state

    Returns:
        GradeAttemptResponse with the new state and session action

    Raises:
        InvalidProbability: If the stored mastery is outside [0, 1]
        TopicMismatch: If the state belongs to another topic
    """
    model = model or MasteryModel()
    attempt = request.attempt

    state = request.current_mastery_state or model.initial_state(attempt.topic_id)
    if state.topic_id != attempt.topic_id:
        raise TopicMismatch(state.topic_id, attempt.topic_id)

    tuned = model.for_question_type(attempt.question_type)
    new_state = tuned.apply_attempt(
        state,
        attempt.is_correct,
        at=attempt.timestamp,
        difficulty_level=attempt.difficulty_level,
        window=window,
    )
    mastered = tuned.is_mastered(new_state.probability, mastery_threshold)
    action, feedback = decide_action(attempt.is_correct, state.probability)
    if attempt.is_correct and mastered:
        feedback = FeedbackCode.CORRECT_MASTERED

    logger.debug(
        "Graded {} attempt on {}: {} ({})",
        "correct" if attempt.is_correct else "incorrect",
        attempt.topic_id,
        action.value,
        feedback.value,
    )

    return GradeAttemptResponse(
        new_mastery=new_state.probability,
        predicted_success=tuned.predict_correct(new_state.probability),
        is_mastered=mastered,
        action=action,
        feedback_code=feedback,
        state=new_state,
    )


def apply_attempts(
    state: MasteryState,
    attempts: Iterable[AttemptEvent],
    model: MasteryModel | None = None,
    window: int = 10,
) -> MasteryState:
    """
    Replay attempts for one topic in timestamp order.

    Attempts arriving out of order (e.g. from a retried sync) are sorted
    first so the result does not depend on delivery order.
    """
    model = model or MasteryModel()
    ordered = sorted(attempts, key=lambda a: a.timestamp)
    for attempt in ordered:
        if attempt.topic_id != state.topic_id:
            raise TopicMismatch(state.topic_id, attempt.topic_id)
        state = model.for_question_type(attempt.question_type).apply_attempt(
            state,
            attempt.is_correct,
            at=attempt.timestamp,
            difficulty_level=attempt.difficulty_level,
            window=window,
        )
    return state
