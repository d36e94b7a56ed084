"""
Configuration settings for the adaptive tutoring decision engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every engine component also accepts an explicit config object, so settings are
only consulted when a caller asks for `from_settings()`.
"""
from __future__ import annotations

import sys
from functools import lru_cache
from typing import Literal

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level for the stderr log sink",
    )

    # ========================================
    # Knowledge Tracing (BKT)
    # ========================================
    bkt_p_init: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Prior probability the skill is known before practice",
    )
    bkt_p_transit: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Probability of learning on each practice opportunity",
    )
    bkt_p_slip: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Probability of answering wrong despite knowing",
    )
    bkt_p_guess: float = Field(
        default=0.25,
        ge=0.0,
        le=1.0,
        description="Probability of answering right without knowing",
    )
    mastery_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Mastery probability at which a topic counts as mastered",
    )

    # ========================================
    # Item Selection (IRT 3PL)
    # ========================================
    selector_target_success_min: float = Field(
        default=0.70,
        description="Lower bound of the target success band",
    )
    selector_target_success_max: float = Field(
        default=0.80,
        description="Upper bound of the target success band",
    )
    selector_information_weight: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Weight of Fisher information vs. band closeness",
    )
    selector_band_falloff: float = Field(
        default=0.5,
        gt=0.0,
        description="Success-probability distance at which band closeness reaches 0",
    )
    selector_exposure_window_hours: float = Field(
        default=24.0,
        ge=0.0,
        description="Items seen within this window are not served again",
    )

    # ========================================
    # Review Scheduling
    # ========================================
    review_initial_interval_days: int = Field(default=1, ge=1)
    review_initial_ease: float = Field(default=2.5, ge=1.3)
    review_min_ease: float = Field(default=1.3)
    review_max_interval_days: int = Field(
        default=180,
        ge=1,
        description="Cap on any review interval",
    )
    review_hard_factor: float = Field(default=1.2)
    review_easy_bonus: float = Field(default=1.3)
    review_stability_step: float = Field(
        default=0.3,
        description="Stability gained per consecutive correct review",
    )
    fsrs_request_retention: float = Field(
        default=0.90,
        gt=0.0,
        lt=1.0,
        description="Target recall probability at the FSRS due date",
    )
    fsrs_max_interval_days: int = Field(default=365, ge=1)

    # ========================================
    # Recommendations
    # ========================================
    plan_struggling_mastery: float = Field(default=0.4)
    plan_struggling_error_rate: float = Field(default=0.4)
    plan_challenge_mastery: float = Field(default=0.9)
    plan_challenge_lookback_days: int = Field(
        default=14,
        description="A difficult attempt within this window suppresses CHALLENGE",
    )
    plan_warmup_max_recent_attempts: int = Field(
        default=5,
        description="Learners with fewer attempts in the last 24h get a warm-up",
    )
    plan_deep_dive_min_budget: int = Field(
        default=45,
        description="Session length (minutes) that counts as a deep session",
    )
    plan_overflow_tolerance_minutes: int = Field(
        default=10,
        ge=0,
        description="How far a guaranteed CRITICAL review may exceed the budget",
    )

    def get_bkt_config(self) -> dict[str, float]:
        """Get BKT parameters as a dictionary."""
        return {
            "p_init": self.bkt_p_init,
            "p_transit": self.bkt_p_transit,
            "p_slip": self.bkt_p_slip,
            "p_guess": self.bkt_p_guess,
        }

    def get_selector_config(self) -> dict[str, float]:
        """Get item selection configuration as a dictionary."""
        return {
            "target_min": self.selector_target_success_min,
            "target_max": self.selector_target_success_max,
            "information_weight": self.selector_information_weight,
            "band_falloff": self.selector_band_falloff,
            "exposure_window_hours": self.selector_exposure_window_hours,
        }

    def get_review_config(self) -> dict[str, float]:
        """Get review scheduling configuration as a dictionary."""
        return {
            "initial_interval_days": self.review_initial_interval_days,
            "initial_ease": self.review_initial_ease,
            "min_ease": self.review_min_ease,
            "max_interval_days": self.review_max_interval_days,
            "hard_factor": self.review_hard_factor,
            "easy_bonus": self.review_easy_bonus,
            "stability_step": self.review_stability_step,
        }

    def get_fsrs_config(self) -> dict[str, float]:
        """Get FSRS scheduling configuration as a dictionary."""
        return {
            "request_retention": self.fsrs_request_retention,
            "max_interval_days": self.fsrs_max_interval_days,
        }

    def get_plan_config(self) -> dict[str, any]:
        """Get recommendation configuration as a dictionary."""
        return {
            "mastery_threshold": self.mastery_threshold,
            "struggling_mastery": self.plan_struggling_mastery,
            "struggling_error_rate": self.plan_struggling_error_rate,
            "challenge_mastery": self.plan_challenge_mastery,
            "challenge_lookback_days": self.plan_challenge_lookback_days,
            "warmup_max_recent_attempts": self.plan_warmup_max_recent_attempts,
            "deep_dive_min_budget": self.plan_deep_dive_min_budget,
            "overflow_tolerance_minutes": self.plan_overflow_tolerance_minutes,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Install the stderr log sink at the configured level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or get_settings().log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
