"""
Engine error taxonomy.

Every failure raised by the decision engine derives from TutorEngineError so
callers can isolate one learner's failure without catching unrelated bugs.

- InvalidProbability: a probability input outside [0, 1]
- InvalidParameters: IRT item parameters out of range
- InvalidQuality: a review quality that is not AGAIN/HARD/GOOD/EASY
- NoEligibleItems: nothing left to serve after exposure filtering
- TopicMismatch: an attempt applied to another topic's state
"""

from __future__ import annotations


class TutorEngineError(Exception):
    """Base class for decision engine errors."""
    pass


class InvalidProbability(TutorEngineError, ValueError):
    """Raised when a mastery or probability value is outside [0, 1]."""

    def __init__(self, name: str, value: float):
        self.name = name
        self.value = value
        super().__init__(f"{name} must be within [0, 1], got {value!r}")


class InvalidParameters(TutorEngineError, ValueError):
    """Raised when item parameters violate a > 0 or 0 <= c < 1."""

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Invalid parameters for item {item_id!r}: {reason}")


class InvalidQuality(TutorEngineError, ValueError):
    """Raised when a review quality cannot be mapped to a known grade."""

    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"Unknown review quality: {quality!r}")


class NoEligibleItems(TutorEngineError):
    """Raised when every candidate was filtered out by exposure history."""

    def __init__(self, total_candidates: int, excluded: int):
        self.total_candidates = total_candidates
        self.excluded = excluded
        super().__init__(
            f"No eligible items: {excluded} of {total_candidates} candidates excluded"
        )


class TopicMismatch(TutorEngineError, ValueError):
    """Raised when an attempt is applied to another topic's mastery state."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Attempt for topic {actual!r} applied to state of {expected!r}")
