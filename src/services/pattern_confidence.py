"""
Confidence recalculator - incremental accumulator updates for a pattern.

Two separate confidence views exist and must not be mixed:
- stored confidence: grows by a fixed step per observation, capped, and is
  never lowered by this path (apply_event)
- enhanced confidence: a read-time view that weighs sample size, time span,
  success rate and statistical significance (enhanced_confidence). Never stored.
"""
import math
from datetime import datetime
from typing import Optional

from src.schemas.learning import DEFAULT_THRESHOLDS, InsightState, LearningThresholds
from src.services.pattern_thresholds import calculate_time_span_days, threshold_met
from src.utils.timezone import ensure_utc

ENHANCED_CONFIDENCE_CEILING = 95


def recommendation_for(success_rate: float) -> str:
    """Plain-language guidance for the current success rate."""
    if success_rate >= 75:
        return "Current approach working well"
    elif success_rate >= 50:
        return "Minor adjustments needed"
    else:
        return "Significant improvements required"


def new_insight_state(
    pattern_type: str,
    pattern_value: str,
    score: float,
    occurred_at: datetime,
    thresholds: Optional[LearningThresholds] = None,
) -> InsightState:
    """Accumulator state after the very first observation of a pattern."""
    t = thresholds or DEFAULT_THRESHOLDS
    return InsightState(
        pattern_type=pattern_type,
        pattern_value=pattern_value,
        frequency=1,
        success_rate=float(score),
        confidence=t.initial_confidence,
        sample_size=1,
        first_occurrence=ensure_utc(occurred_at),
        time_span_days=1,
        threshold_met=False,
        recommendation=recommendation_for(score),
    )


def apply_event(
    state: InsightState,
    new_score: float,
    now: datetime,
    occurred_at: Optional[datetime] = None,
    thresholds: Optional[LearningThresholds] = None,
) -> InsightState:
    """
    Fold one new observation into the accumulators. Pure: returns a new state.

    Args:
        state: Current accumulator state
        new_score: Outcome score of the new edit (0-100)
        now: Reference time for the time span
        occurred_at: Timestamp of the new edit; backdated edits move first_occurrence
        thresholds: Gate values; defaults to the shipped thresholds

    Returns:
        Updated InsightState with threshold_met recomputed
    """
    t = thresholds or DEFAULT_THRESHOLDS
    old_frequency = max(state.frequency, 0)

    if old_frequency > 0:
        success_rate = (state.success_rate * old_frequency + new_score) / (old_frequency + 1)
    else:
        success_rate = float(new_score)

    frequency = old_frequency + 1
    confidence = min(t.confidence_cap, state.confidence + t.confidence_increment)
    # The cap only bounds growth; a value already above it is left alone
    confidence = max(confidence, state.confidence)

    first_occurrence = ensure_utc(state.first_occurrence)
    if occurred_at is not None:
        first_occurrence = min(first_occurrence, ensure_utc(occurred_at))
    time_span_days = calculate_time_span_days(first_occurrence, now)

    return state.model_copy(update={
        "frequency": frequency,
        "success_rate": round(success_rate, 2),
        "confidence": confidence,
        "sample_size": frequency,
        "first_occurrence": first_occurrence,
        "time_span_days": time_span_days,
        "threshold_met": threshold_met(frequency, confidence, time_span_days, t),
        "recommendation": recommendation_for(success_rate),
    })


def enhanced_confidence(
    confidence: float,
    sample_size: int,
    time_span_days: int,
    success_rate: float,
) -> int:
    """
    Sample-size and recency aware confidence for display and ranking.
    Idempotent and side-effect free; the stored confidence is untouched.
    """
    value = float(confidence)

    # Diminishing returns on volume
    if sample_size > 0:
        value += min(20.0, math.log10(sample_size) * 15)

    value += min(10.0, time_span_days * 0.5)

    if success_rate >= 80:
        value += 10
    elif success_rate <= 40:
        value -= 5

    # Statistical significance
    if sample_size < 10:
        value *= 0.9
    elif sample_size >= 20:
        value *= 1.05

    # Halves round up
    return max(0, min(ENHANCED_CONFIDENCE_CEILING, math.floor(value + 0.5)))
