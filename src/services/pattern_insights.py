"""
Pattern insight recalculation - the only writer of pattern_insights.

Per edit event:
1. insert-if-absent on (pattern_type, pattern_value), then lock the row
2. fold the new score into the accumulators (apply_event)
3. rebuild weekly averages from the ledger and rescore stability
All of it runs in the caller's transaction, so a pattern's derived fields are
updated together or not at all. Different patterns never contend.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.pattern_insight import PatternInsight
from src.schemas.learning import (
    DEFAULT_THRESHOLDS,
    InsightState,
    LearningThresholds,
    StabilityResult,
)
from src.services.pattern_confidence import apply_event, new_insight_state
from src.services.pattern_stability import analyze_stability
from src.services.pattern_thresholds import calculate_time_span_days, threshold_met
from src.services.weekly_aggregates import weekly_averages
from src.utils.learning_errors import LearningStorageError
from src.utils.timezone import ensure_utc, utc_now

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _state_from_row(row: PatternInsight) -> InsightState:
    return InsightState(
        pattern_type=row.pattern_type,
        pattern_value=row.pattern_value,
        frequency=row.frequency,
        success_rate=row.success_rate,
        confidence=row.confidence,
        sample_size=row.sample_size,
        first_occurrence=ensure_utc(row.first_occurrence),
        time_span_days=row.time_span_days,
        threshold_met=row.threshold_met,
        recommendation=row.recommendation,
    )


def _write_state(row: PatternInsight, state: InsightState) -> None:
    row.frequency = state.frequency
    row.success_rate = state.success_rate
    row.confidence = state.confidence
    row.sample_size = state.sample_size
    row.first_occurrence = state.first_occurrence
    row.time_span_days = state.time_span_days
    row.threshold_met = state.threshold_met
    row.recommendation = state.recommendation


async def _insert_if_absent(db: AsyncSession, state: InsightState, now: datetime) -> bool:
    """Create the insight row from its first observation. False if it already existed."""
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise LearningStorageError(f"Atomic insight upsert not supported on {dialect}")

    stmt = insert(PatternInsight).values(
        pattern_type=state.pattern_type,
        pattern_value=state.pattern_value,
        frequency=state.frequency,
        success_rate=state.success_rate,
        confidence=state.confidence,
        sample_size=state.sample_size,
        recommendation=state.recommendation,
        first_occurrence=state.first_occurrence,
        time_span_days=state.time_span_days,
        threshold_met=state.threshold_met,
        weekly_success_rates=[],
        created_at=now,
        last_updated=now,
    ).on_conflict_do_nothing(index_elements=["pattern_type", "pattern_value"])

    result = await db.execute(stmt)
    return result.rowcount == 1


async def _lock_insight(
    db: AsyncSession, pattern_type: str, pattern_value: str,
) -> Optional[PatternInsight]:
    result = await db.execute(
        select(PatternInsight)
        .where(
            and_(
                PatternInsight.pattern_type == pattern_type,
                PatternInsight.pattern_value == pattern_value,
            )
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _refresh_stability(
    db: AsyncSession,
    row: PatternInsight,
    now: datetime,
    thresholds: LearningThresholds,
) -> None:
    # The row is global: every user's edits of this (type, value) feed it
    weeks = await weekly_averages(
        db, row.pattern_value, now=now, thresholds=thresholds,
        pattern_type=row.pattern_type,
    )
    stability = analyze_stability(weeks, thresholds)

    row.stability_score = stability.stability_score
    row.pattern_variance = stability.variance
    row.stability_validated = stability.is_stable
    row.pattern_drift_detected = stability.drift_detected
    row.weekly_success_rates = stability.weekly_rates
    row.last_updated = now


async def upsert_pattern_insight(
    db: AsyncSession,
    pattern_type: str,
    pattern_value: str,
    score: float,
    occurred_at: datetime,
    now: Optional[datetime] = None,
    thresholds: Optional[LearningThresholds] = None,
) -> PatternInsight:
    """
    Fold one edit outcome into its PatternInsight and rescore stability.
    Does not commit; the edit event store owns the transaction.

    Args:
        db: Session holding the open transaction (edit event already flushed)
        pattern_type: Insight family, e.g. "edit_type"
        pattern_value: Pattern label of the edit
        score: Outcome score of the edit (0-100)
        occurred_at: When the edit happened
        now: Reference time for time span and the weekly window

    Returns:
        The updated PatternInsight row
    """
    t = thresholds or DEFAULT_THRESHOLDS
    now = ensure_utc(now) if now else utc_now()
    occurred_at = ensure_utc(occurred_at)

    initial = new_insight_state(pattern_type, pattern_value, score, occurred_at, t)
    created = await _insert_if_absent(db, initial, now)

    row = await _lock_insight(db, pattern_type, pattern_value)
    if created:
        # Span is measured to now so backdated first edits count their age
        span = calculate_time_span_days(initial.first_occurrence, now)
        state = initial.model_copy(update={
            "time_span_days": span,
            "threshold_met": threshold_met(initial.sample_size, initial.confidence, span, t),
        })
    else:
        state = apply_event(_state_from_row(row), score, now, occurred_at, t)

    _write_state(row, state)
    await _refresh_stability(db, row, now, t)
    await db.flush()

    logger.info(
        "Pattern insight updated: %s:%s n=%d success=%.1f confidence=%.0f "
        "threshold_met=%s stability=%.3f drift=%s",
        pattern_type, pattern_value, row.sample_size, row.success_rate,
        row.confidence, row.threshold_met, row.stability_score,
        row.pattern_drift_detected,
    )
    return row


async def recalculate_pattern(
    db: AsyncSession,
    pattern_type: str,
    pattern_value: str,
    now: Optional[datetime] = None,
    thresholds: Optional[LearningThresholds] = None,
) -> Optional[PatternInsight]:
    """
    Rescore an existing insight from the ledger without a new observation.
    Used after threshold changes; accumulators are kept, gates are recomputed.
    Commits on success.

    Returns:
        The refreshed row, or None if the pattern was never observed
    """
    t = thresholds or DEFAULT_THRESHOLDS
    now = ensure_utc(now) if now else utc_now()

    row = await _lock_insight(db, pattern_type, pattern_value)
    if row is None:
        return None

    row.time_span_days = calculate_time_span_days(row.first_occurrence, now)
    row.threshold_met = threshold_met(row.sample_size, row.confidence, row.time_span_days, t)
    await _refresh_stability(db, row, now, t)
    await db.commit()

    logger.info(
        "Pattern insight recalculated: %s:%s threshold_met=%s stability=%.3f drift=%s",
        pattern_type, pattern_value, row.threshold_met, row.stability_score,
        row.pattern_drift_detected,
    )
    return row


async def user_stability(
    db: AsyncSession,
    pattern_type: str,
    pattern_value: str,
    user_id: str,
    now: Optional[datetime] = None,
    thresholds: Optional[LearningThresholds] = None,
) -> StabilityResult:
    """
    Stability of one user's edits of a pattern, for diagnostics.
    Read-only: the shared PatternInsight row is never touched.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    now = ensure_utc(now) if now else utc_now()

    weeks = await weekly_averages(
        db, pattern_value, user_id=user_id, now=now, thresholds=t,
        pattern_type=pattern_type,
    )
    return analyze_stability(weeks, t)
