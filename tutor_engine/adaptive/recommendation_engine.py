"""
Recommendation Engine - Time-boxed study plans.

Fuses the three learner models into one ranked action list:

- Review urgency (ReviewScheduler forgetting risk)
- Knowledge gaps (BKT mastery, recent error rate, mistake patterns)
- Curriculum position (prerequisites, topics a mastery would unlock)

Pipeline:
1. Generate candidates per rule (REVIEW, STRENGTHEN, NEW_CONTENT, CHALLENGE,
   WARM_UP, DEEP_DIVE)
2. Score: priority = w_urgency * urgency + w_gap * mastery gap
   + w_unlock * unlock + w_focus * focus-mode match
3. Keep one recommendation per topic, best first
4. Pack greedily into the session budget; the most urgent CRITICAL review
   is always included, time-boxed if it cannot fit
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from loguru import logger

from tutor_engine.core.contracts import BuildPlanRequest
from tutor_engine.core.errors import NoEligibleItems
from tutor_engine.core.mastery import (
    DEFAULT_MASTERY_THRESHOLD,
    BKTParams,
    MasteryModel,
    ability_from_mastery,
    check_probability,
)
from tutor_engine.core.models import (
    FocusMode,
    ItemParameters,
    MasteryState,
    MistakePattern,
    Rationale,
    ReasonCode,
    Recommendation,
    RecommendationType,
    Urgency,
    ensure_utc,
)
from tutor_engine.learning.item_selector import ItemSelector, SelectorConfig
from tutor_engine.study.mastery_calculator import MasteryCalculator, MasteryLevel
from tutor_engine.study.retention_engine import ReviewScheduler, SchedulerConfig

if TYPE_CHECKING:
    from config import Settings


# =============================================================================
# WEIGHTS AND PRESETS
# =============================================================================

# (urgency, mastery gap, curriculum unlock, focus match) per focus mode
FOCUS_WEIGHTS: dict[FocusMode, tuple[float, float, float, float]] = {
    FocusMode.BALANCED: (0.45, 0.30, 0.25, 0.00),
    FocusMode.REVIEW: (0.50, 0.10, 0.05, 0.35),
    FocusMode.LEARN: (0.20, 0.30, 0.25, 0.25),
    FocusMode.CHALLENGE: (0.20, 0.10, 0.10, 0.60),
}

FOCUS_TYPES: dict[FocusMode, frozenset[RecommendationType]] = {
    FocusMode.BALANCED: frozenset(),
    FocusMode.REVIEW: frozenset({RecommendationType.REVIEW, RecommendationType.WARM_UP}),
    FocusMode.LEARN: frozenset(
        {
            RecommendationType.NEW_CONTENT,
            RecommendationType.DEEP_DIVE,
            RecommendationType.STRENGTHEN,
        }
    ),
    FocusMode.CHALLENGE: frozenset(
        {RecommendationType.CHALLENGE, RecommendationType.DEEP_DIVE}
    ),
}

# Target success band for the suggested item, by recommendation type
TYPE_TARGET_BANDS: dict[RecommendationType, tuple[float, float]] = {
    RecommendationType.WARM_UP: (0.85, 0.95),
    RecommendationType.REVIEW: (0.75, 0.85),
    RecommendationType.STRENGTHEN: (0.75, 0.85),
    RecommendationType.NEW_CONTENT: (0.70, 0.80),
    RecommendationType.DEEP_DIVE: (0.65, 0.75),
    RecommendationType.CHALLENGE: (0.50, 0.65),
}

# Fixed time boxes (minutes); REVIEW and STRENGTHEN are computed
TYPE_MINUTES = {
    RecommendationType.NEW_CONTENT: 25,
    RecommendationType.CHALLENGE: 15,
    RecommendationType.WARM_UP: 5,
    RecommendationType.DEEP_DIVE: 30,
}

# Mistakes older than this no longer count as recent
MISTAKE_RECENCY_DAYS = 7.0


@dataclass(frozen=True)
class PlanConfig:
    """Recommendation thresholds."""

    mastery_threshold: float = DEFAULT_MASTERY_THRESHOLD
    struggling_mastery: float = 0.4
    struggling_error_rate: float = 0.4
    challenge_mastery: float = 0.9
    challenge_lookback_days: int = 14
    warmup_max_recent_attempts: int = 5
    warmup_max_error_rate: float = 0.3
    deep_dive_min_budget: int = 45
    overflow_tolerance_minutes: int = 10
    focus_weights: Mapping[FocusMode, tuple[float, float, float, float]] = field(
        default_factory=lambda: dict(FOCUS_WEIGHTS)
    )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PlanConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_plan_config())


@dataclass
class _Candidate:
    """Recommendation under construction (scores not yet combined)."""

    topic_id: str
    type: RecommendationType
    urgency: Urgency
    urgency_score: float
    mastery: float
    estimated_minutes: int
    difficulty: int
    rationale: Rationale


@dataclass
class _PlanContext:
    """Per-request lookups shared by the candidate rules."""

    request: BuildPlanRequest
    now: datetime
    states: dict[str, MasteryState]
    levels: dict[str, MasteryLevel]
    patterns: dict[str, list[MistakePattern]]
    unlocks: dict[str, int]
    max_unlocks: int
    items_by_topic: dict[str, list[ItemParameters]]


def _clamp_difficulty(value: int) -> int:
    return max(1, min(5, value))


class RecommendationEngine:
    """
    Builds a prioritized, budget-packed plan for one learner.

    Components are injected so that a plan can be built with per-course
    BKT parameters or scheduler settings.
    """

    def __init__(
        self,
        config: PlanConfig | None = None,
        model: MasteryModel | None = None,
        scheduler: ReviewScheduler | None = None,
        selector: ItemSelector | None = None,
        calculator: MasteryCalculator | None = None,
    ):
        self.config = config or PlanConfig()
        self.model = model or MasteryModel()
        self.scheduler = scheduler or ReviewScheduler()
        self.selector = selector or ItemSelector()
        self.calculator = calculator or MasteryCalculator()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RecommendationEngine:
        """Engine with every component configured from settings."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(
            config=PlanConfig.from_settings(settings),
            model=MasteryModel(BKTParams.from_settings(settings)),
            scheduler=ReviewScheduler(SchedulerConfig.from_settings(settings)),
            selector=ItemSelector(SelectorConfig.from_settings(settings)),
        )

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def build_plan(
        self, request: BuildPlanRequest, now: datetime | None = None
    ) -> list[Recommendation]:
        """
        Ranked recommendations that fit the session budget.

        Args:
            request: Learner state, catalog, budget and focus mode
            now: Reference time (defaults to current UTC time)

        Returns:
            Recommendations sorted by priority (desc), then minutes (asc)
        """
        now = ensure_utc(now) or datetime.now(timezone.utc)
        ctx = self._build_context(request, now)

        candidates: list[_Candidate] = []
        candidates.extend(self._review_candidates(ctx))
        candidates.extend(self._strengthen_candidates(ctx))
        candidates.extend(self._new_content_candidates(ctx))
        candidates.extend(self._challenge_candidates(ctx))
        candidates.extend(self._warm_up_candidates(ctx))
        candidates.extend(self._deep_dive_candidates(ctx))

        scored = [self._score(candidate, ctx) for candidate in candidates]
        ranked = self.deduplicate(self.rank(scored))
        plan = self.pack(ranked, request.session_budget_minutes)
        plan = [self._attach_item(rec, ctx) for rec in plan]

        logger.info(
            "Plan for {}: {} of {} candidates, {}/{} min ({})",
            request.learner_id,
            len(plan),
            len(candidates),
            sum(rec.estimated_minutes for rec in plan),
            request.session_budget_minutes,
            request.focus_mode.value,
        )
        return plan

    @staticmethod
    def rank(recommendations: list[Recommendation]) -> list[Recommendation]:
        """Sort by priority desc, then estimated minutes asc."""
        return sorted(
            recommendations,
            key=lambda r: (-round(r.priority, 9), r.estimated_minutes, r.topic_id, r.type.value),
        )

    @staticmethod
    def deduplicate(ranked: list[Recommendation]) -> list[Recommendation]:
        """
        One recommendation per topic, keeping the best ranked.

        A CRITICAL review always claims its topic.
        """
        critical_topics = {
            r.topic_id
            for r in ranked
            if r.type is RecommendationType.REVIEW and r.urgency is Urgency.CRITICAL
        }
        seen: set[str] = set()
        result = []
        for rec in ranked:
            if rec.topic_id in seen:
                continue
            if rec.topic_id in critical_topics and not (
                rec.type is RecommendationType.REVIEW and rec.urgency is Urgency.CRITICAL
            ):
                continue
            seen.add(rec.topic_id)
            result.append(rec)
        return result

    def pack(self, ranked: list[Recommendation], budget_minutes: int) -> list[Recommendation]:
        """
        Greedy packing into the session budget.

        The highest-ranked CRITICAL review is reserved first. It may overrun
        the budget by the overflow tolerance; beyond that its time box is cut
        down to what the session allows.
        """
        guaranteed = next(
            (
                r
                for r in ranked
                if r.type is RecommendationType.REVIEW and r.urgency is Urgency.CRITICAL
            ),
            None,
        )

        used = 0
        reserved: Recommendation | None = None
        if guaranteed is not None:
            allowed = budget_minutes + self.config.overflow_tolerance_minutes
            rationale = guaranteed.rationale.with_code(ReasonCode.CRITICAL_GUARANTEED)
            minutes = guaranteed.estimated_minutes
            if minutes > allowed:
                minutes = max(1, allowed)
                rationale = rationale.with_code(ReasonCode.TIME_BOXED)
                logger.debug(
                    "Time-boxed critical review {} to {} min", guaranteed.topic_id, minutes
                )
            reserved = replace(guaranteed, estimated_minutes=minutes, rationale=rationale)
            used = minutes

        plan = []
        for rec in ranked:
            if rec is guaranteed:
                plan.append(reserved)
                continue
            if used + rec.estimated_minutes <= budget_minutes:
                plan.append(rec)
                used += rec.estimated_minutes
        return plan

    # =========================================================================
    # CONTEXT
    # =========================================================================

    def _build_context(self, request: BuildPlanRequest, now: datetime) -> _PlanContext:
        for state in request.mastery_states:
            check_probability(f"mastery of {state.topic_id}", state.probability)

        states = {s.topic_id: s for s in request.mastery_states}
        levels = {
            topic_id: self.calculator.level_for_state(state)
            for topic_id, state in states.items()
        }

        patterns: dict[str, list[MistakePattern]] = {}
        for pattern in request.mistake_patterns:
            if pattern.topic_id is not None:
                patterns.setdefault(pattern.topic_id, []).append(pattern)

        unlocks: dict[str, int] = {}
        for topic in request.topics:
            dependent_state = states.get(topic.topic_id)
            if dependent_state and dependent_state.probability >= self.config.mastery_threshold:
                continue
            for prereq in topic.prerequisites:
                unlocks[prereq] = unlocks.get(prereq, 0) + 1

        items_by_topic: dict[str, list[ItemParameters]] = {}
        for item in request.item_catalog:
            items_by_topic.setdefault(item.topic_id, []).append(item)

        return _PlanContext(
            request=request,
            now=now,
            states=states,
            levels=levels,
            patterns=patterns,
            unlocks=unlocks,
            max_unlocks=max(unlocks.values(), default=0),
            items_by_topic=items_by_topic,
        )

    def _mastery(self, ctx: _PlanContext, topic_id: str) -> float:
        state = ctx.states.get(topic_id)
        return state.probability if state else self.model.params.p_init

    def _level(self, ctx: _PlanContext, topic_id: str) -> MasteryLevel:
        return ctx.levels.get(topic_id, MasteryLevel.NOT_STARTED)

    # =========================================================================
    # CANDIDATE RULES
    # =========================================================================

    def _review_candidates(self, ctx: _PlanContext) -> list[_Candidate]:
        """Due or overdue topics, urgency bucketed from forgetting risk."""
        out = []
        for record in self.scheduler.topics_due_for_review(ctx.request.review_records, ctx.now):
            risk = self.scheduler.forgetting_risk(record, ctx.now)
            overdue = self.scheduler.days_overdue(record, ctx.now)
            state = ctx.states.get(record.topic_id)
            error_rate = state.error_rate if state else 0.0
            level = self._level(ctx, record.topic_id)

            codes = [ReasonCode.DUE_FOR_REVIEW]
            if overdue >= 1.0:
                codes.append(ReasonCode.OVERDUE)
            urgency = Urgency.from_risk(risk)
            if urgency.rank >= Urgency.HIGH.rank:
                codes.append(ReasonCode.HIGH_FORGETTING_RISK)

            out.append(
                _Candidate(
                    topic_id=record.topic_id,
                    type=RecommendationType.REVIEW,
                    urgency=urgency,
                    urgency_score=risk,
                    mastery=self._mastery(ctx, record.topic_id),
                    estimated_minutes=self.review_minutes(level, error_rate),
                    difficulty=_clamp_difficulty(level.rank),
                    rationale=Rationale(
                        codes=tuple(codes),
                        mastery=state.probability if state else None,
                        forgetting_risk=risk,
                        error_rate=error_rate,
                        days_overdue=overdue,
                    ),
                )
            )
        return out

    def _strengthen_candidates(self, ctx: _PlanContext) -> list[_Candidate]:
        """Low mastery with a high recent error rate."""
        cfg = self.config
        out = []
        for topic_id, state in ctx.states.items():
            if state.attempts_total == 0:
                continue
            error_rate = state.error_rate
            if state.probability >= cfg.struggling_mastery or error_rate <= cfg.struggling_error_rate:
                continue

            patterns = sorted(
                ctx.patterns.get(topic_id, []), key=lambda p: (-p.frequency, p.concept_tag)
            )
            last_mistake = max(
                (p.last_occurred for p in patterns), default=state.last_updated_at
            )
            recency = 0.0
            if last_mistake is not None:
                days = max(0.0, (ctx.now - last_mistake).total_seconds() / 86400.0)
                recency = math.exp(-days / MISTAKE_RECENCY_DAYS)
            score = min(1.0, error_rate * (0.5 + 0.5 * recency))

            codes = [ReasonCode.LOW_MASTERY, ReasonCode.HIGH_ERROR_RATE]
            if patterns and recency >= math.exp(-1):
                codes.append(ReasonCode.RECENT_MISTAKES)

            out.append(
                _Candidate(
                    topic_id=topic_id,
                    type=RecommendationType.STRENGTHEN,
                    urgency=Urgency.from_risk(score),
                    urgency_score=score,
                    mastery=state.probability,
                    estimated_minutes=15 + math.ceil(error_rate * 10),
                    difficulty=_clamp_difficulty(self._level(ctx, topic_id).rank - 1),
                    rationale=Rationale(
                        codes=tuple(codes),
                        mastery=state.probability,
                        error_rate=error_rate,
                        weak_concepts=tuple(p.concept_tag for p in patterns),
                    ),
                )
            )
        return out

    def _new_content_candidates(self, ctx: _PlanContext) -> list[_Candidate]:
        """Unattempted curriculum topics whose prerequisites are all mastered."""
        out = []
        for topic in ctx.request.topics:
            state = ctx.states.get(topic.topic_id)
            if state is not None and state.attempts_total > 0:
                continue
            if not self.prerequisites_satisfied(topic.prerequisites, ctx.states):
                continue

            codes = [ReasonCode.NEVER_ATTEMPTED]
            if topic.prerequisites:
                codes.append(ReasonCode.PREREQUISITES_MET)
            mastery = self._mastery(ctx, topic.topic_id)
            out.append(
                _Candidate(
                    topic_id=topic.topic_id,
                    type=RecommendationType.NEW_CONTENT,
                    urgency=Urgency.MEDIUM,
                    urgency_score=0.5,
                    mastery=mastery,
                    estimated_minutes=TYPE_MINUTES[RecommendationType.NEW_CONTENT],
                    difficulty=2,
                    rationale=Rationale(codes=tuple(codes), mastery=mastery),
                )
            )
        return out

    def _challenge_candidates(self, ctx: _PlanContext) -> list[_Candidate]:
        """High mastery with no difficult attempt in the lookback window."""
        cfg = self.config
        cutoff = ctx.now - timedelta(days=cfg.challenge_lookback_days)
        out = []
        for topic_id, state in ctx.states.items():
            if state.probability < cfg.challenge_mastery:
                continue
            last_hard = state.last_difficult_attempt_at
            if last_hard is not None and last_hard >= cutoff:
                continue
            out.append(
                _Candidate(
                    topic_id=topic_id,
                    type=RecommendationType.CHALLENGE,
                    urgency=Urgency.LOW,
                    urgency_score=0.1,
                    mastery=state.probability,
                    estimated_minutes=TYPE_MINUTES[RecommendationType.CHALLENGE],
                    difficulty=5,
                    rationale=Rationale(
                        codes=(ReasonCode.MASTERED_WITHOUT_CHALLENGE,),
                        mastery=state.probability,
                    ),
                )
            )
        return out

    def _warm_up_candidates(self, ctx: _PlanContext) -> list[_Candidate]:
        """One easy, well-known topic when the learner has barely practiced today."""
        cfg = self.config
        recent = ctx.request.attempts_last_24h
        if recent is None or recent >= cfg.warmup_max_recent_attempts:
            return []

        pool = [
            state
            for topic_id, state in ctx.states.items()
            if self._level(ctx, topic_id).rank >= MasteryLevel.COMPETENT.rank
            and state.error_rate < cfg.warmup_max_error_rate
        ]
        if not pool:
            return []
        state = max(
            pool,
            key=lambda s: (self._level(ctx, s.topic_id).rank, s.probability, s.topic_id),
        )
        return [
            _Candidate(
                topic_id=state.topic_id,
                type=RecommendationType.WARM_UP,
                urgency=Urgency.LOW,
                urgency_score=0.2,
                mastery=state.probability,
                estimated_minutes=TYPE_MINUTES[RecommendationType.WARM_UP],
                difficulty=2,
                rationale=Rationale(
                    codes=(ReasonCode.LOW_RECENT_ACTIVITY,),
                    mastery=state.probability,
                    error_rate=state.error_rate,
                ),
            )
        ]

    def _deep_dive_candidates(self, ctx: _PlanContext) -> list[_Candidate]:
        """Push the topic closest to MASTER in learn-focused or long sessions."""
        request = ctx.request
        if not (
            request.focus_mode is FocusMode.LEARN
            or request.session_budget_minutes >= self.config.deep_dive_min_budget
        ):
            return []

        near = (MasteryLevel.COMPETENT, MasteryLevel.SKILLED)
        pool = [s for t, s in ctx.states.items() if self._level(ctx, t) in near]
        if not pool:
            return []
        state = max(
            pool,
            key=lambda s: (self._level(ctx, s.topic_id).rank, s.probability, s.topic_id),
        )
        level = self._level(ctx, state.topic_id)
        return [
            _Candidate(
                topic_id=state.topic_id,
                type=RecommendationType.DEEP_DIVE,
                urgency=Urgency.LOW,
                urgency_score=0.25,
                mastery=state.probability,
                estimated_minutes=TYPE_MINUTES[RecommendationType.DEEP_DIVE],
                difficulty=_clamp_difficulty(level.rank + 1),
                rationale=Rationale(codes=(ReasonCode.NEAR_MASTERY,), mastery=state.probability),
            )
        ]

    # =========================================================================
    # SCORING
    # =========================================================================

    def _score(self, candidate: _Candidate, ctx: _PlanContext) -> Recommendation:
        mode = ctx.request.focus_mode
        w_urgency, w_gap, w_unlock, w_focus = self.config.focus_weights[mode]

        gap = 1.0 - candidate.mastery
        unlocks = ctx.unlocks.get(candidate.topic_id, 0)
        unlock = unlocks / ctx.max_unlocks if ctx.max_unlocks else 0.0
        focus = 1.0 if candidate.type in FOCUS_TYPES[mode] else 0.0

        priority = (
            w_urgency * candidate.urgency_score
            + w_gap * gap
            + w_unlock * unlock
            + w_focus * focus
        )

        rationale = candidate.rationale
        if unlocks:
            rationale = replace(rationale, unlocks=unlocks).with_code(ReasonCode.UNLOCKS_TOPICS)
        if focus:
            rationale = rationale.with_code(ReasonCode.FOCUS_MODE_MATCH)

        return Recommendation(
            topic_id=candidate.topic_id,
            type=candidate.type,
            priority=max(0.0, min(1.0, priority)),
            urgency=candidate.urgency,
            estimated_minutes=candidate.estimated_minutes,
            difficulty=candidate.difficulty,
            rationale=rationale,
        )

    def _attach_item(self, rec: Recommendation, ctx: _PlanContext) -> Recommendation:
        """Suggest the next item for a recommendation from the catalog."""
        items = ctx.items_by_topic.get(rec.topic_id)
        if not items:
            return rec
        ability = ability_from_mastery(self._mastery(ctx, rec.topic_id))
        try:
            item = self.selector.select_next(
                ability,
                items,
                exposure_history=ctx.request.exposure_history,
                now=ctx.now,
                target_band=TYPE_TARGET_BANDS[rec.type],
            )
        except NoEligibleItems:
            logger.debug("No unexposed items left for {}", rec.topic_id)
            return rec
        return replace(rec, item_id=item.item_id)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def prerequisites_satisfied(
        self, prerequisites: tuple[str, ...] | list[str], states: Mapping[str, MasteryState]
    ) -> bool:
        """All prerequisites at or above the mastery threshold."""
        for prereq in prerequisites:
            state = states.get(prereq)
            if state is None or state.probability < self.config.mastery_threshold:
                return False
        return True

    @staticmethod
    def review_minutes(level: MasteryLevel, error_rate: float) -> int:
        """Longer reviews for lower levels and shakier recall."""
        return 10 + (5 - level.rank) * 2 + math.ceil(error_rate * 5)
