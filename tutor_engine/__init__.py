"""
Adaptive tutoring decision engine.

Estimates mastery (BKT), selects items (IRT 3PL), schedules reviews and
builds time-boxed study plans. Storage, transport and UI live elsewhere;
everything here is pure computation over explicit inputs.
"""

__version__ = "1.0.0"
