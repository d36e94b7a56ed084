"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tutor_engine.core.mastery import BKTParams, MasteryModel  # noqa: E402
from tutor_engine.core.models import ItemParameters, MasteryState, ReviewRecord  # noqa: E402
from tutor_engine.study.retention_engine import ReviewScheduler  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Multi-component flows")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed reference time for deterministic scheduling."""
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def model():
    """BKT model with default parameters."""
    return MasteryModel()


@pytest.fixture
def textbook_model():
    """BKT model with the classic worked-example parameters."""
    return MasteryModel(BKTParams(p_init=0.3, p_transit=0.4, p_slip=0.1, p_guess=0.2))


@pytest.fixture
def scheduler():
    return ReviewScheduler()


@pytest.fixture
def make_state(now):
    """Factory for mastery states."""

    def _make(topic_id="fractions", probability=0.5, total=0, correct=0, **kwargs):
        kwargs.setdefault("last_updated_at", now - timedelta(days=1))
        return MasteryState(
            topic_id=topic_id,
            probability=probability,
            attempts_total=total,
            attempts_correct=correct,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_record(now):
    """Factory for review records; `due_days_ago` positions the due date."""

    def _make(topic_id="fractions", interval=4, ease=2.5, due_days_ago=0.0, streak=0):
        next_due = now - timedelta(days=due_days_ago)
        return ReviewRecord(
            topic_id=topic_id,
            interval_days=interval,
            ease_factor=ease,
            last_reviewed_at=next_due - timedelta(days=interval),
            next_due_at=next_due,
            consecutive_correct=streak,
        )

    return _make


@pytest.fixture
def sample_item():
    """Provide a sample item for testing."""
    return ItemParameters(
        item_id="frac-001",
        topic_id="fractions",
        difficulty=0.0,
        discrimination=1.2,
        guess_floor=0.2,
    )
