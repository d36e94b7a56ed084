"""
Mastery Level Calculator.

Maps raw practice statistics onto six discrete levels:

    NOT_STARTED -> FAMILIAR -> PRACTICING -> COMPETENT -> SKILLED -> MASTER

Each level has its own entry guard (attempt count, accuracy band, difficult
attempts). Guards are pure functions over TopicStats and can be tested one at
a time; `classify` evaluates them in order and `transition` reports how a
new batch of statistics moves a learner between levels, up or down.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from tutor_engine.core.models import MasteryState


class MasteryLevel(str, Enum):
    """Discrete practice level for a topic."""

    NOT_STARTED = "not_started"
    FAMILIAR = "familiar"
    PRACTICING = "practicing"
    COMPETENT = "competent"
    SKILLED = "skilled"
    MASTER = "master"

    @property
    def rank(self) -> int:
        """0 (not started) to 5 (master)."""
        return _LEVEL_ORDER.index(self)

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


_LEVEL_ORDER = (
    MasteryLevel.NOT_STARTED,
    MasteryLevel.FAMILIAR,
    MasteryLevel.PRACTICING,
    MasteryLevel.COMPETENT,
    MasteryLevel.SKILLED,
    MasteryLevel.MASTER,
)


class MilestoneCode(str, Enum):
    """What the learner has to do to reach the next level."""

    FIRST_ATTEMPT = "first_attempt"
    MORE_ATTEMPTS = "more_attempts"
    RAISE_ACCURACY = "raise_accuracy"
    ATTEMPT_DIFFICULT = "attempt_difficult"
    MAINTAIN = "maintain"


@dataclass(frozen=True)
class TopicStats:
    """Practice statistics for one topic."""

    total_attempts: int = 0
    correct_attempts: int = 0
    has_attempted_difficult: bool = False
    consecutive_correct: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.correct_attempts / self.total_attempts

    @classmethod
    def from_mastery_state(cls, state: MasteryState) -> TopicStats:
        return cls(
            total_attempts=state.attempts_total,
            correct_attempts=state.attempts_correct,
            has_attempted_difficult=state.last_difficult_attempt_at is not None,
            consecutive_correct=state.trailing_correct,
        )


@dataclass(frozen=True)
class Milestone:
    code: MilestoneCode
    remaining_attempts: int = 0
    target_accuracy: float | None = None


@dataclass(frozen=True)
class LevelTransition:
    previous: MasteryLevel
    current: MasteryLevel

    @property
    def changed(self) -> bool:
        return self.previous is not self.current

    @property
    def promoted(self) -> bool:
        return self.current.rank > self.previous.rank


class MasteryCalculator:
    """
    Level state machine with configurable thresholds.

    Evidence thresholds:
    - FAMILIAR: 1-4 attempts
    - PRACTICING: 5+ attempts, accuracy < 60%
    - COMPETENT: 10+ attempts, 60-80% accuracy
    - SKILLED: 15+ attempts, 80-95% accuracy
    - MASTER: 20+ attempts, >= 95% accuracy, including difficult items
    """

    FAMILIAR_MAX_ATTEMPTS = 4
    PRACTICING_MIN_ATTEMPTS = 5
    COMPETENT_MIN_ATTEMPTS = 10
    SKILLED_MIN_ATTEMPTS = 15
    MASTER_MIN_ATTEMPTS = 20

    COMPETENT_ACCURACY = 0.60
    SKILLED_ACCURACY = 0.80
    MASTER_ACCURACY = 0.95

    # ----- entry guards -----

    def is_not_started(self, stats: TopicStats) -> bool:
        return stats.total_attempts == 0

    def is_familiar(self, stats: TopicStats) -> bool:
        return 1 <= stats.total_attempts <= self.FAMILIAR_MAX_ATTEMPTS

    def is_practicing(self, stats: TopicStats) -> bool:
        return (
            stats.total_attempts >= self.PRACTICING_MIN_ATTEMPTS
            and stats.accuracy < self.COMPETENT_ACCURACY
        )

    def is_competent(self, stats: TopicStats) -> bool:
        return (
            stats.total_attempts >= self.COMPETENT_MIN_ATTEMPTS
            and self.COMPETENT_ACCURACY <= stats.accuracy < self.SKILLED_ACCURACY
        )

    def is_skilled(self, stats: TopicStats) -> bool:
        return (
            stats.total_attempts >= self.SKILLED_MIN_ATTEMPTS
            and self.SKILLED_ACCURACY <= stats.accuracy < self.MASTER_ACCURACY
        )

    def is_master(self, stats: TopicStats) -> bool:
        return (
            stats.total_attempts >= self.MASTER_MIN_ATTEMPTS
            and stats.accuracy >= self.MASTER_ACCURACY
            and stats.has_attempted_difficult
        )

    def _guards(self) -> tuple[tuple[MasteryLevel, Callable[[TopicStats], bool]], ...]:
        return (
            (MasteryLevel.NOT_STARTED, self.is_not_started),
            (MasteryLevel.FAMILIAR, self.is_familiar),
            (MasteryLevel.PRACTICING, self.is_practicing),
            (MasteryLevel.COMPETENT, self.is_competent),
            (MasteryLevel.SKILLED, self.is_skilled),
            (MasteryLevel.MASTER, self.is_master),
        )

    # ----- transitions -----

    def classify(self, stats: TopicStats) -> MasteryLevel:
        """
        Level for a set of statistics.

        Statistics that fall between guards (e.g. 7 attempts at 90%) are
        placed by accuracy alone.
        """
        for level, guard in self._guards():
            if guard(stats):
                return level

        if stats.accuracy >= self.SKILLED_ACCURACY:
            return MasteryLevel.SKILLED
        if stats.accuracy >= self.COMPETENT_ACCURACY:
            return MasteryLevel.COMPETENT
        return MasteryLevel.PRACTICING

    def transition(self, current: MasteryLevel, stats: TopicStats) -> LevelTransition:
        """Move from `current` to whatever level the new statistics support."""
        return LevelTransition(previous=current, current=self.classify(stats))

    def level_for_state(self, state: MasteryState | None) -> MasteryLevel:
        if state is None:
            return MasteryLevel.NOT_STARTED
        return self.classify(TopicStats.from_mastery_state(state))

    # ----- progress reporting -----

    def progress(self, stats: TopicStats, level: MasteryLevel) -> float:
        """
        Progress toward the next level, 0-100.

        Blends attempt-count progress and accuracy progress equally.
        """
        acc = stats.accuracy
        n = stats.total_attempts

        if level is MasteryLevel.NOT_STARTED:
            return 0.0
        if level is MasteryLevel.MASTER:
            return 100.0
        if level is MasteryLevel.FAMILIAR:
            return min(100.0, n / self.PRACTICING_MIN_ATTEMPTS * 100)

        if level is MasteryLevel.PRACTICING:
            attempts = min(n / self.COMPETENT_MIN_ATTEMPTS, 1.0)
            accuracy = min(acc / self.COMPETENT_ACCURACY, 1.0)
        elif level is MasteryLevel.COMPETENT:
            attempts = min(n / self.SKILLED_MIN_ATTEMPTS, 1.0)
            accuracy = _band_progress(acc, self.COMPETENT_ACCURACY, self.SKILLED_ACCURACY)
        else:
            attempts = min(n / self.MASTER_MIN_ATTEMPTS, 1.0)
            accuracy = _band_progress(acc, self.SKILLED_ACCURACY, self.MASTER_ACCURACY)

        return min(100.0, (attempts + accuracy) / 2 * 100)

    def next_milestone(self, stats: TopicStats, level: MasteryLevel) -> Milestone:
        """The single most immediate requirement for promotion."""
        n = stats.total_attempts

        if level is MasteryLevel.NOT_STARTED:
            return Milestone(MilestoneCode.FIRST_ATTEMPT, remaining_attempts=1)
        if level is MasteryLevel.MASTER:
            return Milestone(MilestoneCode.MAINTAIN)
        if level is MasteryLevel.FAMILIAR:
            return Milestone(
                MilestoneCode.MORE_ATTEMPTS,
                remaining_attempts=self.PRACTICING_MIN_ATTEMPTS - n,
            )

        targets = {
            MasteryLevel.PRACTICING: (self.COMPETENT_MIN_ATTEMPTS, self.COMPETENT_ACCURACY),
            MasteryLevel.COMPETENT: (self.SKILLED_MIN_ATTEMPTS, self.SKILLED_ACCURACY),
            MasteryLevel.SKILLED: (self.MASTER_MIN_ATTEMPTS, self.MASTER_ACCURACY),
        }
        needed_attempts, target_accuracy = targets[level]
        if n < needed_attempts:
            return Milestone(
                MilestoneCode.MORE_ATTEMPTS,
                remaining_attempts=needed_attempts - n,
                target_accuracy=target_accuracy,
            )
        if level is MasteryLevel.SKILLED and not stats.has_attempted_difficult:
            return Milestone(MilestoneCode.ATTEMPT_DIFFICULT)
        return Milestone(MilestoneCode.RAISE_ACCURACY, target_accuracy=target_accuracy)

    def needs_practice(self, stats: TopicStats, level: MasteryLevel) -> bool:
        """True when accuracy has slipped below what the level requires."""
        if level.rank >= MasteryLevel.COMPETENT.rank and stats.accuracy < self.COMPETENT_ACCURACY:
            return True
        if level.rank >= MasteryLevel.SKILLED.rank and stats.accuracy < self.SKILLED_ACCURACY:
            return True
        return False


def _band_progress(value: float, low: float, high: float) -> float:
    if value < low:
        return 0.0
    return min(1.0, (value - low) / (high - low))
