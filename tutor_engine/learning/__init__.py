"""
Learning Module - item selection.

Provides IRT 3PL scoring and exposure-aware next-item selection.
"""

from tutor_engine.learning.item_selector import (
    AbilityEstimate,
    ItemSelector,
    ScoredItem,
    SelectorConfig,
    estimate_ability_eap,
    score_candidate,
)

__all__ = [
    "AbilityEstimate",
    "ItemSelector",
    "ScoredItem",
    "SelectorConfig",
    "estimate_ability_eap",
    "score_candidate",
]
