"""
Core Mastery Module.

Bayesian Knowledge Tracing over a single latent skill per topic.

Design:
- BKTParams: the four BKT probabilities, injected per model (no global instance)
- MasteryModel: stateless update/predict operations over a mastery probability
- apply_attempt: folds one graded attempt into a new MasteryState

Every update is clamped to [MASTERY_FLOOR, MASTERY_CEILING] so that a single
answer can never pin the estimate to certainty.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from loguru import logger

from tutor_engine.core.errors import InvalidProbability
from tutor_engine.core.models import MasteryState, ensure_utc

if TYPE_CHECKING:
    from config import Settings


MASTERY_FLOOR = 0.01
MASTERY_CEILING = 0.99
DEFAULT_MASTERY_THRESHOLD = 0.85

# Attempts at or above this difficulty count as "difficult"
DIFFICULT_LEVEL = 4

# Guess/slip presets by question format
QUESTION_TYPE_PRESETS: dict[str, dict[str, float]] = {
    "multiple_choice": {"p_guess": 0.25, "p_slip": 0.05},
    "numeric": {"p_guess": 0.05, "p_slip": 0.15},
    "proof_step": {"p_guess": 0.02, "p_slip": 0.20},
}


def check_probability(name: str, value: float) -> float:
    if value is None or math.isnan(value) or value < 0.0 or value > 1.0:
        raise InvalidProbability(name, value)
    return value


def clamp_mastery(value: float) -> float:
    """Keep a mastery estimate inside [0.01, 0.99]."""
    return max(MASTERY_FLOOR, min(MASTERY_CEILING, value))


@dataclass(frozen=True)
class BKTParams:
    """BKT parameters for one topic (or the global default)."""

    p_init: float = 0.1  # P(L0): known before any practice
    p_transit: float = 0.2  # P(T): learned on an opportunity
    p_slip: float = 0.1  # P(S): wrong despite knowing
    p_guess: float = 0.25  # P(G): right without knowing

    def __post_init__(self):
        for name in ("p_init", "p_transit", "p_slip", "p_guess"):
            check_probability(name, getattr(self, name))

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BKTParams:
        """Build parameters from application settings."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_bkt_config())


class MasteryModel:
    """
    Stateless BKT update and prediction.

    Two models with different parameters can coexist; nothing is cached
    between calls.
    """

    def __init__(self, params: BKTParams | None = None):
        self.params = params or BKTParams()

    def update_mastery(self, prior: float, is_correct: bool) -> float:
        """
        Posterior mastery after one observed response.

        Args:
            prior: Current mastery probability in [0, 1]
            is_correct: Whether the response was correct

        Returns:
            Updated mastery after the Bayes step and the learning transition,
            clamped to [0.01, 0.99]

        Raises:
            InvalidProbability: If prior is outside [0, 1]
        """
        check_probability("prior", prior)
        p = self.params

        if is_correct:
            known = prior * (1 - p.p_slip)
            unknown = (1 - prior) * p.p_guess
        else:
            known = prior * p.p_slip
            unknown = (1 - prior) * (1 - p.p_guess)

        evidence = known + unknown
        posterior = known / evidence if evidence > 0 else prior

        learned = posterior + (1 - posterior) * p.p_transit
        return clamp_mastery(learned)

    def predict_correct(self, mastery: float) -> float:
        """Probability the next response is correct given mastery."""
        check_probability("mastery", mastery)
        p = self.params
        return mastery * (1 - p.p_slip) + (1 - mastery) * p.p_guess

    def is_mastered(
        self, mastery: float, threshold: float = DEFAULT_MASTERY_THRESHOLD
    ) -> bool:
        check_probability("mastery", mastery)
        return mastery >= threshold

    def practices_needed(
        self, mastery: float, target: float = DEFAULT_MASTERY_THRESHOLD
    ) -> float:
        """
        Consecutive correct answers needed to reach target.

        Returns 0 when already at target and math.inf when the estimate can
        no longer move upward.
        """
        check_probability("mastery", mastery)
        check_probability("target", target)

        target = min(target, MASTERY_CEILING)
        current = mastery
        count = 0
        while current < target:
            nxt = self.update_mastery(current, True)
            if nxt <= current:
                return math.inf
            current = nxt
            count += 1
        return count

    def for_question_type(self, question_type: str | None) -> MasteryModel:
        """
        Model with guess/slip tuned to a question format.

        Unknown or missing formats return this model unchanged.
        """
        preset = QUESTION_TYPE_PRESETS.get((question_type or "").lower())
        if preset is None:
            return self
        return MasteryModel(replace(self.params, **preset))

    def initial_state(self, topic_id: str) -> MasteryState:
        return MasteryState(topic_id=topic_id, probability=clamp_mastery(self.params.p_init))

    def apply_attempt(
        self,
        state: MasteryState,
        is_correct: bool,
        at: datetime | None = None,
        difficulty_level: int | None = None,
        window: int = 10,
    ) -> MasteryState:
        """
        Fold one graded attempt into a new MasteryState.

        Args:
            state: Current state (left untouched)
            is_correct: Attempt outcome
            at: Attempt time (defaults to now, UTC)
            difficulty_level: 1-5 difficulty of the answered item
            window: Number of recent outcomes kept for error rate

        Returns:
            New MasteryState
        """
        at = ensure_utc(at) or datetime.now(timezone.utc)
        probability = self.update_mastery(state.probability, is_correct)

        recent = (state.recent_outcomes + (bool(is_correct),))[-window:] if window > 0 else ()
        difficult_at = state.last_difficult_attempt_at
        if difficulty_level is not None and difficulty_level >= DIFFICULT_LEVEL:
            difficult_at = at

        logger.debug(
            "BKT update {}: {:.3f} -> {:.3f} ({})",
            state.topic_id,
            state.probability,
            probability,
            "correct" if is_correct else "incorrect",
        )

        return replace(
            state,
            probability=probability,
            attempts_total=state.attempts_total + 1,
            attempts_correct=state.attempts_correct + (1 if is_correct else 0),
            last_updated_at=at,
            recent_outcomes=recent,
            last_difficult_attempt_at=difficult_at,
        )


# =============================================================================
# DECAY AND ABILITY CONVERSION
# =============================================================================


def decay_mastery(
    probability: float,
    days_since_practice: float,
    decay_rate: float = 0.1,
    floor: float = 0.1,
) -> float:
    """
    Exponential decay of mastery toward a retention floor.

    Nothing is forgotten below the floor, and an estimate already under it is
    returned unchanged.
    """
    check_probability("probability", probability)
    if days_since_practice <= 0 or probability <= floor:
        return probability
    decayed = floor + (probability - floor) * math.exp(-decay_rate * days_since_practice)
    return clamp_mastery(decayed)


def ability_from_mastery(mastery: float) -> float:
    """Map mastery onto the IRT logit scale (0.5 -> 0.0)."""
    check_probability("mastery", mastery)
    m = clamp_mastery(mastery)
    return math.log(m / (1 - m))


def mastery_from_ability(ability: float) -> float:
    """Inverse of ability_from_mastery, clamped to the mastery range."""
    return clamp_mastery(1.0 / (1.0 + math.exp(-ability)))
