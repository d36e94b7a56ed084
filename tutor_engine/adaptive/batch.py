"""
Batch planning across learners.

Plans for different learners are independent and run in a thread pool.
Requests for the same learner are grouped and processed in order by a single
worker, so per-learner ordering is preserved. One learner's failure is
recorded on its outcome and never affects the others.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from tutor_engine.adaptive.recommendation_engine import RecommendationEngine
from tutor_engine.core.contracts import BuildPlanRequest
from tutor_engine.core.models import Recommendation


@dataclass(frozen=True)
class PlanOutcome:
    """Result of one plan request: either a plan or the error that stopped it."""

    learner_id: str
    plan: tuple[Recommendation, ...] = ()
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_plans(
    requests: Sequence[BuildPlanRequest],
    engine: RecommendationEngine | None = None,
    now: datetime | None = None,
    max_workers: int | None = None,
) -> list[PlanOutcome]:
    """
    Build plans for many learners concurrently.

    Args:
        requests: Plan requests, possibly several per learner
        engine: Shared engine (stateless, safe across threads)
        now: Reference time applied to every plan
        max_workers: Thread pool size (executor default if None)

    Returns:
        One PlanOutcome per request, in request order
    """
    engine = engine or RecommendationEngine()

    groups: dict[str, list[int]] = {}
    for index, request in enumerate(requests):
        groups.setdefault(request.learner_id, []).append(index)

    outcomes: list[PlanOutcome | None] = [None] * len(requests)

    def run_learner(indexes: list[int]) -> None:
        for index in indexes:
            request = requests[index]
            try:
                plan = engine.build_plan(request, now=now)
            except Exception as e:
                logger.warning("Plan failed for {}: {}", request.learner_id, e)
                outcomes[index] = PlanOutcome(learner_id=request.learner_id, error=e)
            else:
                outcomes[index] = PlanOutcome(learner_id=request.learner_id, plan=tuple(plan))

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(run_learner, indexes) for indexes in groups.values()]
        for future in futures:
            future.result()

    failed = sum(1 for outcome in outcomes if outcome is not None and not outcome.ok)
    logger.info(
        "Built {} plans for {} learners ({} failed)", len(requests), len(groups), failed
    )
    return outcomes
