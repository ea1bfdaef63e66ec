"""
Stability analyzer - turns a weekly-average series into a stability score
and a drift flag.

Stability is an inverted coefficient of variation over the qualifying weeks:
    stability = clamp(0, 1, 1 - stddev / mean)
Variance is the population variance (divide by N), so one catastrophic week
in a short series drags the score down hard.

Drift compares the most recent week against the mean of every earlier week.
It is a coarse trend-break check, not a changepoint test.
"""
import logging
import math
from typing import Optional, Sequence, Union

from src.schemas.learning import (
    DEFAULT_THRESHOLDS,
    LearningThresholds,
    StabilityResult,
    WeeklyAggregate,
)

logger = logging.getLogger(__name__)

# Returned while a pattern has too few qualifying weeks: unknown, not unstable
NEUTRAL_STABILITY_SCORE = 0.5


def _as_rates(weekly_averages: Sequence[Union[float, WeeklyAggregate]]) -> list[float]:
    return [
        float(w.average_score) if isinstance(w, WeeklyAggregate) else float(w)
        for w in weekly_averages
    ]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def population_variance(values: Sequence[float]) -> float:
    """Mean squared deviation from the mean (divides by N, not N-1)."""
    if not values:
        return 0.0
    mean = _mean(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def stability_score(mean: float, variance: float) -> float:
    """1 - stddev/mean clamped to [0, 1]; zero or negative mean scores 0."""
    if mean <= 0:
        return 0.0
    return max(0.0, min(1.0, 1.0 - math.sqrt(variance) / mean))


def detect_drift(
    rates: Sequence[float],
    thresholds: Optional[LearningThresholds] = None,
) -> bool:
    """
    Flag drift when the latest week differs from the mean of all prior weeks
    by more than the drift threshold. Needs min_drift_weeks weeks.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    if len(rates) < t.min_drift_weeks:
        return False
    recent = rates[-1]
    historical = _mean(rates[:-1])
    return abs(recent - historical) > t.drift_threshold


def analyze_stability(
    weekly_averages: Sequence[Union[float, WeeklyAggregate]],
    thresholds: Optional[LearningThresholds] = None,
) -> StabilityResult:
    """
    Score a weekly series (oldest week first).

    Args:
        weekly_averages: Weekly average outcome scores, or WeeklyAggregate rows
        thresholds: Gate values; defaults to the shipped thresholds

    Returns:
        StabilityResult. Fewer than min_stability_weeks weeks yields the
        neutral default (0.5, variance 0, not stable, no drift).
    """
    t = thresholds or DEFAULT_THRESHOLDS
    rates = _as_rates(weekly_averages)

    if len(rates) < t.min_stability_weeks:
        return StabilityResult(
            stability_score=NEUTRAL_STABILITY_SCORE,
            variance=0.0,
            is_stable=False,
            drift_detected=False,
            weekly_rates=rates,
        )

    mean = _mean(rates)
    variance = round(population_variance(rates), 3)
    score = round(stability_score(mean, population_variance(rates)), 3)
    drift = detect_drift(rates, t)

    logger.debug(
        "Stability analysis: weeks=%d mean=%.2f variance=%.3f score=%.3f drift=%s",
        len(rates), mean, variance, score, drift,
    )

    return StabilityResult(
        stability_score=score,
        variance=variance,
        is_stable=score >= t.stability_threshold,
        drift_detected=drift,
        weekly_rates=rates,
    )
