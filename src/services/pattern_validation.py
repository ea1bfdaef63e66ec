"""
Pattern validation - combines the threshold gate and the stability analysis
into one status per insight, and serves only fully validated patterns to
response generation.

An empty result is a normal answer: callers fall back to their default
drafting behaviour. Nothing here raises because data is thin.
"""
import logging
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.pattern_insight import PatternInsight
from src.schemas.learning import DEFAULT_THRESHOLDS, LearningThresholds, ValidationStatus
from src.services.pattern_confidence import enhanced_confidence
from src.utils.learning_errors import LearningStorageError

logger = logging.getLogger(__name__)


def validation_status(
    insight,
    thresholds: Optional[LearningThresholds] = None,
) -> ValidationStatus:
    """
    Derive the validation status of an insight. First matching rule wins.

    Pure function of the insight's fields; accepts a PatternInsight row or any
    object exposing the same attributes.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    threshold_ok = bool(insight.threshold_met)
    stable = bool(insight.stability_validated)
    drifting = bool(insight.pattern_drift_detected)
    sample_size = insight.sample_size or 0
    confidence = insight.confidence or 0
    time_span_days = insight.time_span_days or 0

    if threshold_ok and stable and not drifting:
        return ValidationStatus.FULLY_VALIDATED
    if threshold_ok and not stable:
        return ValidationStatus.THRESHOLD_MET_BUT_UNSTABLE
    if threshold_ok and drifting:
        return ValidationStatus.PATTERN_DRIFT_DETECTED
    if stable and not threshold_ok:
        return ValidationStatus.STABLE_BUT_INSUFFICIENT_DATA
    if sample_size >= t.min_sample_size and confidence < t.min_confidence:
        return ValidationStatus.INSUFFICIENT_CONFIDENCE
    if (
        sample_size >= t.min_sample_size
        and confidence >= t.min_confidence
        and time_span_days < t.min_time_span_days
    ):
        return ValidationStatus.INSUFFICIENT_TIME_SPAN
    if sample_size < t.min_sample_size:
        return ValidationStatus.INSUFFICIENT_SAMPLES
    return ValidationStatus.PENDING_VALIDATION


async def get_insight(
    db: AsyncSession, pattern_type: str, pattern_value: str,
) -> Optional[PatternInsight]:
    try:
        result = await db.execute(
            select(PatternInsight).where(
                and_(
                    PatternInsight.pattern_type == pattern_type,
                    PatternInsight.pattern_value == pattern_value,
                )
            )
        )
    except SQLAlchemyError as e:
        raise LearningStorageError(f"Could not read insight {pattern_type}:{pattern_value}") from e
    return result.scalar_one_or_none()


async def get_validation_status(
    db: AsyncSession,
    pattern_type: str,
    pattern_value: str,
    thresholds: Optional[LearningThresholds] = None,
) -> Optional[ValidationStatus]:
    """
    Validation status for one pattern, for diagnostics and dashboards.

    Returns:
        The status, or None if the pattern has never been observed
    """
    insight = await get_insight(db, pattern_type, pattern_value)
    if insight is None:
        return None
    return validation_status(insight, thresholds)


async def get_fully_validated_patterns(
    db: AsyncSession,
    pattern_type: str,
    thresholds: Optional[LearningThresholds] = None,
) -> list[PatternInsight]:
    """
    Patterns of one type that passed every gate, most trustworthy first.

    Ordered by stability score, then confidence, then sample size (all desc).
    Returns an empty list when nothing qualifies.
    """
    try:
        result = await db.execute(
            select(PatternInsight)
            .where(
                and_(
                    PatternInsight.pattern_type == pattern_type,
                    PatternInsight.threshold_met.is_(True),
                    PatternInsight.stability_validated.is_(True),
                    PatternInsight.pattern_drift_detected.is_(False),
                )
            )
            .order_by(
                PatternInsight.stability_score.desc(),
                PatternInsight.confidence.desc(),
                PatternInsight.sample_size.desc(),
            )
        )
    except SQLAlchemyError as e:
        raise LearningStorageError(f"Could not read validated patterns for {pattern_type}") from e

    patterns = [
        p for p in result.scalars().all()
        if validation_status(p, thresholds) == ValidationStatus.FULLY_VALIDATED
    ]
    if not patterns:
        logger.debug("No fully validated %s patterns; caller uses defaults", pattern_type)
    return patterns


async def get_validation_summary(
    db: AsyncSession,
    pattern_type: Optional[str] = None,
    thresholds: Optional[LearningThresholds] = None,
) -> dict:
    """
    Count insights per validation status, for dashboards.

    Returns:
        {"total_insights": int, "by_status": {status: count}} with every
        status present, zero when unused
    """
    query = select(PatternInsight)
    if pattern_type:
        query = query.where(PatternInsight.pattern_type == pattern_type)

    try:
        result = await db.execute(query)
    except SQLAlchemyError as e:
        raise LearningStorageError("Could not read pattern insights") from e

    by_status = {status.value: 0 for status in ValidationStatus}
    total = 0
    for insight in result.scalars().all():
        by_status[validation_status(insight, thresholds).value] += 1
        total += 1

    return {"total_insights": total, "by_status": by_status}


async def format_patterns_for_prompt(
    db: AsyncSession,
    pattern_type: str,
    limit: int = 3,
) -> str:
    """
    Format fully validated patterns as guidance for the draft generator.

    Returns:
        Prompt text, or empty string when nothing is validated
    """
    patterns = (await get_fully_validated_patterns(db, pattern_type))[:limit]
    if not patterns:
        return ""

    lines = ["Learned drafting preferences (validated over several weeks):"]
    for i, p in enumerate(patterns, 1):
        confidence = enhanced_confidence(
            p.confidence, p.sample_size, p.time_span_days, p.success_rate,
        )
        lines.append(
            f"{i}. {p.pattern_value}: {p.recommendation or 'Continue current approach'} "
            f"(success: {p.success_rate:.0f}%, confidence: {confidence}%, "
            f"stability: {p.stability_score:.0%})"
        )
    return "\n".join(lines)
