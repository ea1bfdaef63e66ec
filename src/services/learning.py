"""
Learning service - entry points for the draft feedback loop.
Records user edits of AI drafts, reports edit-outcome metrics, and hands
validated patterns to response generation.

Callers outside a request scope use the session-owning wrappers
(record_edit, get_validated_patterns, get_pattern_status); code that already
holds a session calls the underlying services directly.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, func, and_, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.database import async_session_factory
from src.models.edit_event import EditEvent
from src.schemas.learning import SuccessMetrics, ValidationStatus
from src.services.edit_events import DEFAULT_PATTERN_TYPE, record_edit_event
from src.services.pattern_confidence import enhanced_confidence
from src.services.pattern_validation import (
    get_fully_validated_patterns,
    get_validation_status,
    get_validation_summary,
    validation_status,
)
from src.utils.learning_errors import LearningStorageError
from src.utils.logging import correlation_scope
from src.utils.timezone import ensure_utc, utc_now, week_start

logger = logging.getLogger(__name__)

# Success-rate swing (points) between windows that counts as a trend
TREND_SENSITIVITY = 5.0


def _trend_direction(current_rate: float, previous_rate: float) -> str:
    """Classify the change between two success rates."""
    difference = current_rate - previous_rate
    if difference > TREND_SENSITIVITY:
        return "improving"
    elif difference < -TREND_SENSITIVITY:
        return "declining"
    return "stable"


async def record_edit(
    response_id: str,
    original_text: str,
    edited_text: Optional[str],
    pattern_label: str,
    user_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    was_sent: bool = True,
) -> dict:
    """
    Record a draft edit in its own session, using the configured thresholds.

    Returns:
        {"edit_id", "pattern_label", "edit_percentage", "outcome_score", "correlation_id"}
    """
    thresholds = get_settings().learning_thresholds()
    with correlation_scope() as cid:
        async with async_session_factory() as db:
            event = await record_edit_event(
                db,
                response_id=response_id,
                original_text=original_text,
                edited_text=edited_text,
                pattern_label=pattern_label,
                user_id=user_id,
                timestamp=timestamp,
                was_sent=was_sent,
                thresholds=thresholds,
            )

    return {
        "correlation_id": cid,
        "edit_id": str(event.id),
        "pattern_label": event.pattern_label,
        "edit_percentage": event.edit_percentage,
        "outcome_score": event.outcome_score,
    }


async def get_validated_patterns(pattern_type: str = DEFAULT_PATTERN_TYPE) -> list[dict]:
    """
    Fully validated patterns as plain dicts for response generation.
    Empty list means no learned signal yet; generate with defaults.
    """
    thresholds = get_settings().learning_thresholds()
    async with async_session_factory() as db:
        patterns = await get_fully_validated_patterns(db, pattern_type, thresholds)

    return [
        {
            "pattern_type": p.pattern_type,
            "pattern_value": p.pattern_value,
            "recommendation": p.recommendation,
            "success_rate": p.success_rate,
            "confidence": p.confidence,
            "enhanced_confidence": enhanced_confidence(
                p.confidence, p.sample_size, p.time_span_days, p.success_rate,
            ),
            "sample_size": p.sample_size,
            "stability_score": p.stability_score,
        }
        for p in patterns
    ]


async def get_pattern_status(
    pattern_value: str,
    pattern_type: str = DEFAULT_PATTERN_TYPE,
) -> Optional[ValidationStatus]:
    """Validation status for one pattern in its own session; None if never seen."""
    thresholds = get_settings().learning_thresholds()
    async with async_session_factory() as db:
        return await get_validation_status(db, pattern_type, pattern_value, thresholds)


async def _window_metrics(
    db: AsyncSession, since: datetime, user_id: Optional[str],
) -> SuccessMetrics:
    conditions = [EditEvent.created_at >= since]
    if user_id:
        conditions.append(EditEvent.user_id == user_id)

    try:
        result = await db.execute(
            select(
                func.count().label("total"),
                func.sum(case((EditEvent.edit_percentage == 0, 1), else_=0)).label("no_edits"),
                func.sum(case(
                    (and_(EditEvent.edit_percentage > 0, EditEvent.edit_percentage <= 20), 1),
                    else_=0,
                )).label("minor_edits"),
                func.sum(case(
                    (and_(EditEvent.edit_percentage > 20, EditEvent.edit_percentage <= 70), 1),
                    else_=0,
                )).label("major_rewrites"),
                func.sum(case((EditEvent.edit_percentage > 70, 1), else_=0)).label("deleted_drafts"),
                func.avg(EditEvent.outcome_score).label("avg_score"),
            ).where(and_(*conditions))
        )
    except SQLAlchemyError as e:
        raise LearningStorageError("Could not read edit metrics") from e
    row = result.one()

    return SuccessMetrics(
        total_responses=row.total or 0,
        no_edits=row.no_edits or 0,
        minor_edits=row.minor_edits or 0,
        major_rewrites=row.major_rewrites or 0,
        deleted_drafts=row.deleted_drafts or 0,
        overall_success_rate=round(float(row.avg_score), 2) if row.avg_score is not None else 0.0,
    )


async def get_success_metrics(
    db: AsyncSession,
    days: int = 7,
    user_id: Optional[str] = None,
    include_trend: bool = True,
    now: Optional[datetime] = None,
) -> SuccessMetrics:
    """
    Edit-outcome breakdown over the last `days` days.

    Args:
        db: Session to read from
        days: Window length; coerced to at least 1
        user_id: Restrict to one user (None = all users)
        include_trend: Compare against a window twice as long
        now: End of the window; defaults to the current time

    Returns:
        SuccessMetrics with counts per edit band and the trend direction

    Raises:
        LearningStorageError: the ledger could not be read
    """
    days = max(1, int(abs(days or 7)))
    now = ensure_utc(now) if now else utc_now()

    metrics = await _window_metrics(db, now - timedelta(days=days), user_id)
    if include_trend:
        previous = await _window_metrics(db, now - timedelta(days=days * 2), user_id)
        metrics.trend_direction = _trend_direction(
            metrics.overall_success_rate, previous.overall_success_rate,
        )

    logger.info(
        "Success metrics (%dd, user=%s): n=%d success=%.1f%% trend=%s",
        days, user_id or "all", metrics.total_responses,
        metrics.overall_success_rate, metrics.trend_direction,
    )
    return metrics


async def get_performance_trend(
    db: AsyncSession,
    weeks: int = 4,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[dict]:
    """
    Weekly edit volume and average outcome across all patterns, newest week first.
    Unlike stability buckets, single-edit weeks are included.
    """
    weeks = max(1, int(abs(weeks or 4)))
    now = ensure_utc(now) if now else utc_now()

    conditions = [EditEvent.created_at >= now - timedelta(weeks=weeks)]
    if user_id:
        conditions.append(EditEvent.user_id == user_id)

    try:
        result = await db.execute(
            select(EditEvent.created_at, EditEvent.outcome_score).where(and_(*conditions))
        )
    except SQLAlchemyError as e:
        raise LearningStorageError("Could not read the performance trend") from e

    buckets: dict = defaultdict(list)
    for row in result.all():
        buckets[week_start(row.created_at)].append(row.outcome_score)

    return [
        {
            "week_start": week.isoformat(),
            "total_responses": len(scores),
            "success_rate": round(sum(scores) / len(scores), 2),
        }
        for week, scores in sorted(buckets.items(), reverse=True)
    ]


async def get_insights_summary(db: AsyncSession, days: int = 30) -> dict:
    """
    Dashboard-ready rollup: success metrics plus the validated edit patterns.
    """
    metrics = await get_success_metrics(db, days=days)
    summary = await get_validation_summary(db, pattern_type=DEFAULT_PATTERN_TYPE)
    validated = await get_fully_validated_patterns(db, DEFAULT_PATTERN_TYPE)

    return {
        "period_days": days,
        "metrics": metrics.model_dump(),
        "validation": summary,
        "validated_patterns": [
            {
                "pattern": p.pattern_value,
                "status": validation_status(p).value,
                "success_rate": p.success_rate,
                "stability_score": p.stability_score,
            }
            for p in validated
        ],
    }
