"""
Study Module.

Provides:
- Review scheduling and forgetting risk (ReviewScheduler)
- FSRS memory-state scheduling (FSRSScheduler)
- Mastery level state machine (MasteryCalculator)
"""

from tutor_engine.study.mastery_calculator import MasteryCalculator, MasteryLevel, TopicStats
from tutor_engine.study.retention_engine import (
    FSRSConfig,
    FSRSScheduler,
    FSRSState,
    ReviewScheduler,
    SchedulerConfig,
)

__all__ = [
    "MasteryCalculator",
    "MasteryLevel",
    "TopicStats",
    "FSRSConfig",
    "FSRSScheduler",
    "FSRSState",
    "ReviewScheduler",
    "SchedulerConfig",
]
