"""
Unit tests for settings-driven component configuration.
"""

import pytest

from config import Settings, configure_logging, get_settings
from tutor_engine.adaptive.recommendation_engine import PlanConfig, RecommendationEngine
from tutor_engine.core.errors import InvalidProbability
from tutor_engine.core.mastery import BKTParams
from tutor_engine.learning.item_selector import SelectorConfig
from tutor_engine.study.retention_engine import FSRSConfig, SchedulerConfig


class TestSettings:
    def test_defaults_match_component_defaults(self):
        settings = Settings()
        assert BKTParams.from_settings(settings) == BKTParams()
        assert SelectorConfig.from_settings(settings) == SelectorConfig()
        assert SchedulerConfig.from_settings(settings) == SchedulerConfig()
        assert PlanConfig.from_settings(settings) == PlanConfig()
        assert FSRSConfig.from_settings(settings) == FSRSConfig()

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("BKT_P_INIT", "0.3")
        monkeypatch.setenv("REVIEW_MAX_INTERVAL_DAYS", "90")
        settings = Settings()
        assert BKTParams.from_settings(settings).p_init == 0.3
        assert SchedulerConfig.from_settings(settings).max_interval_days == 90

    def test_fsrs_retention_override(self, monkeypatch):
        monkeypatch.setenv("FSRS_REQUEST_RETENTION", "0.95")
        assert FSRSConfig.from_settings(Settings()).request_retention == 0.95

    def test_out_of_range_setting_rejected(self, monkeypatch):
        monkeypatch.setenv("BKT_P_SLIP", "1.5")
        with pytest.raises(ValueError):
            Settings()

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()

    def test_engine_from_settings(self, monkeypatch):
        monkeypatch.setenv("PLAN_OVERFLOW_TOLERANCE_MINUTES", "3")
        engine = RecommendationEngine.from_settings(Settings())
        assert engine.config.overflow_tolerance_minutes == 3
        assert engine.model.params == BKTParams()

    def test_configure_logging(self):
        configure_logging("WARNING")


class TestParameterValidation:
    def test_bkt_params_validated(self):
        with pytest.raises(InvalidProbability):
            BKTParams(p_guess=-0.1)
