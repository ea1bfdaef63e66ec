"""
Learning engine schemas - tunable thresholds and the value objects passed
between the scoring functions.
"""
from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class LearningThresholds(BaseModel):
    """Gates and knobs for pattern validation. Defaults are the shipped values."""
    min_sample_size: int = Field(default=5, ge=1)
    min_confidence: float = Field(default=65.0, ge=0, le=100)
    min_time_span_days: int = Field(default=3, ge=0)

    stability_threshold: float = Field(default=0.7, ge=0, le=1)
    drift_threshold: float = Field(default=20.0, ge=0, description="Absolute score points")
    min_stability_weeks: int = Field(default=3, ge=1)
    min_drift_weeks: int = Field(default=4, ge=2)
    lookback_weeks: int = Field(default=8, ge=1)
    min_weekly_samples: int = Field(default=2, ge=1)

    initial_confidence: float = Field(default=50.0, ge=0, le=100)
    confidence_increment: float = Field(default=2.0, ge=0)
    confidence_cap: float = Field(default=90.0, ge=0, le=100)


DEFAULT_THRESHOLDS = LearningThresholds()

# Insight family used when a caller does not name one
DEFAULT_PATTERN_TYPE = "edit_type"


class ValidationStatus(str, Enum):
    """Where a pattern sits on the road to being applied. Order is precedence."""
    FULLY_VALIDATED = "FULLY_VALIDATED"
    THRESHOLD_MET_BUT_UNSTABLE = "THRESHOLD_MET_BUT_UNSTABLE"
    PATTERN_DRIFT_DETECTED = "PATTERN_DRIFT_DETECTED"
    STABLE_BUT_INSUFFICIENT_DATA = "STABLE_BUT_INSUFFICIENT_DATA"
    INSUFFICIENT_CONFIDENCE = "INSUFFICIENT_CONFIDENCE"
    INSUFFICIENT_TIME_SPAN = "INSUFFICIENT_TIME_SPAN"
    INSUFFICIENT_SAMPLES = "INSUFFICIENT_SAMPLES"
    PENDING_VALIDATION = "PENDING_VALIDATION"


class WeeklyAggregate(BaseModel):
    """Average outcome score for one calendar week (Monday start)."""
    week_start: date
    average_score: float
    sample_count: int


class StabilityResult(BaseModel):
    """Output of the stability analyzer for one weekly series."""
    stability_score: float = 0.5
    variance: float = 0.0
    is_stable: bool = False
    drift_detected: bool = False
    weekly_rates: list[float] = Field(default_factory=list)


class InsightState(BaseModel):
    """Accumulator fields of a PatternInsight, detached from the ORM row."""
    pattern_type: str
    pattern_value: str
    frequency: int = 0
    success_rate: float = 0.0
    confidence: float = 0.0
    sample_size: int = 0
    first_occurrence: datetime
    time_span_days: int = 1
    threshold_met: bool = False
    recommendation: Optional[str] = None


class SuccessMetrics(BaseModel):
    """Edit-outcome breakdown over a recent window."""
    total_responses: int = 0
    no_edits: int = 0
    minor_edits: int = 0
    major_rewrites: int = 0
    deleted_drafts: int = 0
    overall_success_rate: float = 0.0
    trend_direction: str = Field(default="stable", description="improving, stable, declining")
