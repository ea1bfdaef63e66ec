"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
Learning knobs default to the production-tuned values; override per
environment to experiment with stricter or looser gates.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache

from src.schemas.learning import LearningThresholds


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Threshold gate
    learning_min_sample_size: int = 5
    learning_min_confidence: float = 65.0
    learning_min_time_span_days: int = 3

    # Stability / drift
    learning_stability_threshold: float = 0.7
    learning_drift_threshold: float = 20.0
    learning_min_stability_weeks: int = 3
    learning_min_drift_weeks: int = 4
    learning_lookback_weeks: int = 8
    learning_min_weekly_samples: int = 2

    # Incremental confidence
    learning_initial_confidence: float = 50.0
    learning_confidence_increment: float = 2.0
    learning_confidence_cap: float = 90.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def learning_thresholds(self) -> LearningThresholds:
        """Bundle the learning knobs for the pure scoring functions."""
        return LearningThresholds(
            min_sample_size=self.learning_min_sample_size,
            min_confidence=self.learning_min_confidence,
            min_time_span_days=self.learning_min_time_span_days,
            stability_threshold=self.learning_stability_threshold,
            drift_threshold=self.learning_drift_threshold,
            min_stability_weeks=self.learning_min_stability_weeks,
            min_drift_weeks=self.learning_min_drift_weeks,
            lookback_weeks=self.learning_lookback_weeks,
            min_weekly_samples=self.learning_min_weekly_samples,
            initial_confidence=self.learning_initial_confidence,
            confidence_increment=self.learning_confidence_increment,
            confidence_cap=self.learning_confidence_cap,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
