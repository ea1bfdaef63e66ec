"""
Threshold validator - volume/confidence/elapsed-time gate for a pattern.
Independent of stability: a pattern must clear all three hard minimums
before its stability is even worth looking at.
"""
from datetime import datetime
from typing import Optional

from src.schemas.learning import DEFAULT_THRESHOLDS, LearningThresholds
from src.utils.timezone import whole_days_between


def threshold_met(
    sample_size: int,
    confidence: float,
    time_span_days: int,
    thresholds: Optional[LearningThresholds] = None,
) -> bool:
    """
    True iff sample size, confidence and time span all reach their minimums.

    Args:
        sample_size: Observations recorded for the pattern
        confidence: Stored incremental confidence (0-100)
        time_span_days: Days since the pattern was first observed

    Returns:
        Whether the pattern passes the threshold gate
    """
    t = thresholds or DEFAULT_THRESHOLDS
    return (
        sample_size >= t.min_sample_size
        and confidence >= t.min_confidence
        and time_span_days >= t.min_time_span_days
    )


def calculate_time_span_days(first_occurrence: datetime, now: datetime) -> int:
    """Whole days since first occurrence, floored at 1 so day-one patterns read as 1."""
    return max(1, whole_days_between(first_occurrence, now))
