"""
Item Selector - IRT-based next item selection.

Scores candidate items with the three-parameter logistic model and picks the
item that is both informative about the learner's ability and likely to land
in the target success band (desirable difficulty).

Selection Strategy:
1. Drop items seen inside the exposure window
2. Score remaining items: Fisher information (normalized) blended with
   closeness of P(correct) to the target band
3. Highest score wins; ties go to the item whose difficulty is closest to
   the learner's ability

Also provides EAP ability estimation and the 1-10 difficulty scale mapping
used by content authors.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence, Set
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from loguru import logger

from tutor_engine.core.errors import InvalidParameters, NoEligibleItems
from tutor_engine.core.models import ItemParameters, ensure_utc

if TYPE_CHECKING:
    from config import Settings


ExposureHistory = Set[str] | Mapping[str, datetime]

# Score differences below this are treated as ties
SCORE_EPSILON = 1e-9

# Quadrature grid for EAP estimation
THETA_MIN = -4.0
THETA_MAX = 4.0
THETA_STEPS = 81


@dataclass(frozen=True)
class SelectorConfig:
    """Item selection tuning."""

    target_min: float = 0.70
    target_max: float = 0.80
    information_weight: float = 0.5
    band_falloff: float = 0.5
    exposure_window_hours: float = 24.0

    @property
    def target_band(self) -> tuple[float, float]:
        return (self.target_min, self.target_max)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SelectorConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_selector_config())


@dataclass(frozen=True)
class ScoredItem:
    """A candidate with its selection evidence."""

    item: ItemParameters
    p_correct: float
    information: float
    band_closeness: float
    score: float

    @property
    def item_id(self) -> str:
        return self.item.item_id


@dataclass(frozen=True)
class AbilityEstimate:
    theta: float
    standard_error: float


def validate_item(item: ItemParameters) -> ItemParameters:
    """Raise InvalidParameters unless a > 0 and 0 <= c < 1."""
    a, c = item.discrimination, item.guess_floor
    if a is None or math.isnan(a) or a <= 0:
        raise InvalidParameters(item.item_id, f"discrimination must be > 0, got {a!r}")
    if c is None or math.isnan(c) or not (0.0 <= c < 1.0):
        raise InvalidParameters(item.item_id, f"guess floor must be in [0, 1), got {c!r}")
    if item.difficulty is None or math.isnan(item.difficulty):
        raise InvalidParameters(item.item_id, "difficulty must be a number")
    return item


def _logistic(x: float) -> float:
    # Split by sign to keep exp() from overflowing on extreme logits
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def score_candidate(ability: float, item: ItemParameters) -> float:
    """
    Probability of a correct response under the 3PL model.

    P = c + (1 - c) / (1 + exp(-a (theta - b)))

    Raises:
        InvalidParameters: If a <= 0 or c is outside [0, 1)
    """
    validate_item(item)
    a, b, c = item.discrimination, item.difficulty, item.guess_floor
    return c + (1 - c) * _logistic(a * (ability - b))


def fisher_information(ability: float, item: ItemParameters) -> float:
    """Simplified information a^2 * P * (1 - P), used for ranking."""
    p = score_candidate(ability, item)
    return item.discrimination ** 2 * p * (1 - p)


def item_information(ability: float, item: ItemParameters) -> float:
    """Full 3PL item information (accounts for the guessing floor)."""
    p = score_candidate(ability, item)
    a, c = item.discrimination, item.guess_floor
    if p <= 0 or p >= 1:
        return 0.0
    return a ** 2 * ((p - c) ** 2 / (1 - c) ** 2) * ((1 - p) / p)


def total_information(ability: float, items: Iterable[ItemParameters]) -> float:
    """Sum of item information over a set of items."""
    return sum(item_information(ability, item) for item in items)


def band_closeness(
    p_correct: float, band: tuple[float, float], falloff: float = 0.5
) -> float:
    """1.0 inside the band, linearly down to 0.0 at `falloff` away from it."""
    low, high = band
    if low <= p_correct <= high:
        return 1.0
    distance = low - p_correct if p_correct < low else p_correct - high
    return max(0.0, 1.0 - distance / falloff)


class ItemSelector:
    """
    Exposure-aware 3PL item selection.

    Stateless: the exposure history is passed on every call.
    """

    def __init__(self, config: SelectorConfig | None = None):
        self.config = config or SelectorConfig()

    def is_exposed(
        self,
        item_id: str,
        exposure_history: ExposureHistory | None,
        now: datetime,
    ) -> bool:
        """
        Whether an item is blocked by exposure history.

        A plain set of ids blocks outright. A mapping of id to last-seen time
        blocks only inside the exposure window.
        """
        if not exposure_history or item_id not in exposure_history:
            return False
        if isinstance(exposure_history, Mapping):
            seen_at = exposure_history[item_id]
            window = timedelta(hours=self.config.exposure_window_hours)
            return ensure_utc(now) - ensure_utc(seen_at) < window
        return True

    def rank_candidates(
        self,
        ability: float,
        candidates: Sequence[ItemParameters],
        exposure_history: ExposureHistory | None = None,
        now: datetime | None = None,
        target_band: tuple[float, float] | None = None,
    ) -> list[ScoredItem]:
        """
        Score every eligible candidate, best first.

        Returns an empty list when nothing is eligible.
        """
        now = ensure_utc(now) or datetime.now(timezone.utc)
        band = target_band or self.config.target_band

        for item in candidates:
            validate_item(item)

        eligible = [
            item
            for item in candidates
            if not self.is_exposed(item.item_id, exposure_history, now)
        ]
        if len(eligible) < len(candidates):
            logger.debug(
                "Exposure filter removed {} of {} items",
                len(candidates) - len(eligible),
                len(candidates),
            )
        if not eligible:
            return []

        probs = [score_candidate(ability, item) for item in eligible]
        infos = [
            item.discrimination ** 2 * p * (1 - p) for item, p in zip(eligible, probs)
        ]
        max_info = max(infos)

        w = self.config.information_weight
        scored = []
        for item, p, info in zip(eligible, probs, infos):
            closeness = band_closeness(p, band, self.config.band_falloff)
            normalized = info / max_info if max_info > 0 else 0.0
            scored.append(
                ScoredItem(
                    item=item,
                    p_correct=p,
                    information=info,
                    band_closeness=closeness,
                    score=w * normalized + (1 - w) * closeness,
                )
            )

        # Round scores so float noise does not defeat the difficulty tie-break
        scored.sort(
            key=lambda s: (
                -round(s.score / SCORE_EPSILON) * SCORE_EPSILON,
                abs(s.item.difficulty - ability),
                s.item.item_id,
            )
        )
        return scored

    def select_next(
        self,
        ability: float,
        candidates: Sequence[ItemParameters],
        exposure_history: ExposureHistory | None = None,
        now: datetime | None = None,
        target_band: tuple[float, float] | None = None,
    ) -> ItemParameters:
        """
        Pick the next item to serve.

        With the default blend the target band pulls the choice toward
        slightly easier items. An item at the learner's ability has P = 0.5
        for c = 0, which sits 0.2 below the 0.70-0.80 band. A 1-logit easier
        item lands inside the band and outscores it. The exact match wins
        again once the alternative is about 1.5 logits or more away.
        Use information_weight=1.0 for pure maximum-information selection.

        Args:
            ability: Learner ability on the logit scale
            candidates: Items to choose from
            exposure_history: Ids (or id -> last seen) to avoid
            now: Reference time for the exposure window
            target_band: Override for the target success band

        Returns:
            The selected item

        Raises:
            InvalidParameters: If any candidate has invalid parameters
            NoEligibleItems: If no candidate survives exposure filtering
        """
        ranked = self.rank_candidates(ability, candidates, exposure_history, now, target_band)
        if not ranked:
            raise NoEligibleItems(len(candidates), len(candidates))
        best = ranked[0]
        logger.debug(
            "Selected {} (P={:.2f}, info={:.3f}, score={:.3f})",
            best.item_id,
            best.p_correct,
            best.information,
            best.score,
        )
        return best.item


# =============================================================================
# ABILITY ESTIMATION
# =============================================================================


def estimate_ability_eap(
    responses: Sequence[tuple[ItemParameters, bool]],
    prior_mean: float = 0.0,
    prior_sd: float = 1.0,
) -> AbilityEstimate:
    """
    Expected a posteriori ability estimate on a fixed quadrature grid.

    Args:
        responses: (item, was_correct) pairs
        prior_mean: Mean of the normal ability prior
        prior_sd: Standard deviation of the prior

    Returns:
        AbilityEstimate with posterior mean and standard deviation
    """
    step = (THETA_MAX - THETA_MIN) / (THETA_STEPS - 1)
    grid = [THETA_MIN + i * step for i in range(THETA_STEPS)]

    weights = []
    for theta in grid:
        log_w = -0.5 * ((theta - prior_mean) / prior_sd) ** 2
        for item, correct in responses:
            p = min(max(score_candidate(theta, item), 1e-9), 1 - 1e-9)
            log_w += math.log(p if correct else 1 - p)
        weights.append(log_w)

    peak = max(weights)
    weights = [math.exp(w - peak) for w in weights]
    total = sum(weights)

    mean = sum(t * w for t, w in zip(grid, weights)) / total
    var = sum((t - mean) ** 2 * w for t, w in zip(grid, weights)) / total
    return AbilityEstimate(theta=mean, standard_error=math.sqrt(var))


def difficulty_to_irt(difficulty: float) -> float:
    """Map a 1-10 authoring difficulty onto the logit scale (5.5 -> 0.0)."""
    d = max(1.0, min(10.0, difficulty))
    return (d - 5.5) * 0.6


def irt_to_difficulty(b: float) -> int:
    """Inverse of difficulty_to_irt, rounded into 1-10."""
    return int(max(1, min(10, round(b / 0.6 + 5.5))))
