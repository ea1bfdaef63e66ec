"""
Weekly aggregator - buckets a pattern's recent edit outcomes into weekly averages.
Computed fresh from the edit ledger on every call; nothing is cached.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.edit_event import EditEvent
from src.schemas.learning import (
    DEFAULT_PATTERN_TYPE,
    DEFAULT_THRESHOLDS,
    LearningThresholds,
    WeeklyAggregate,
)
from src.utils.timezone import ensure_utc, utc_now, week_start

logger = logging.getLogger(__name__)


def bucket_weekly_averages(
    observations: Iterable[tuple[datetime, float]],
    now: datetime,
    thresholds: Optional[LearningThresholds] = None,
) -> list[WeeklyAggregate]:
    """
    Group (timestamp, score) pairs by week inside the lookback window.

    Args:
        observations: Edit timestamps and outcome scores, any order
        now: End of the window (inclusive)
        thresholds: Supplies lookback_weeks and min_weekly_samples

    Returns:
        Qualifying weeks sorted oldest first. Weeks below the minimum sample
        count are dropped as noise.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    now = ensure_utc(now)
    since = now - timedelta(weeks=t.lookback_weeks)

    buckets: dict = defaultdict(list)
    for occurred_at, score in observations:
        occurred_at = ensure_utc(occurred_at)
        if since <= occurred_at <= now:
            buckets[week_start(occurred_at)].append(float(score))

    return [
        WeeklyAggregate(
            week_start=week,
            average_score=round(sum(scores) / len(scores), 2),
            sample_count=len(scores),
        )
        for week, scores in sorted(buckets.items())
        if len(scores) >= t.min_weekly_samples
    ]


async def weekly_averages(
    db: AsyncSession,
    pattern_label: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
    thresholds: Optional[LearningThresholds] = None,
    pattern_type: str = DEFAULT_PATTERN_TYPE,
) -> list[WeeklyAggregate]:
    """
    Weekly average outcome scores for one (pattern_type, pattern_label) over
    the lookback window.

    Args:
        db: Session to read the ledger from
        pattern_label: Pattern whose edits are aggregated
        user_id: Restrict to one user's edits (None = all users)
        now: End of the window; defaults to the current time
        pattern_type: Insight family; labels are only comparable within one

    Returns:
        Qualifying weeks, oldest first. No data returns an empty list.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    now = ensure_utc(now) if now else utc_now()
    since = now - timedelta(weeks=t.lookback_weeks)

    conditions = [
        EditEvent.pattern_type == pattern_type,
        EditEvent.pattern_label == pattern_label,
        EditEvent.created_at >= since,
        EditEvent.created_at <= now,
    ]
    if user_id:
        conditions.append(EditEvent.user_id == user_id)

    result = await db.execute(
        select(EditEvent.created_at, EditEvent.outcome_score)
        .where(and_(*conditions))
        .order_by(EditEvent.created_at)
    )
    rows = result.all()

    weeks = bucket_weekly_averages(
        ((row.created_at, row.outcome_score) for row in rows), now, t,
    )
    logger.debug(
        "Weekly averages for %s:%s (user=%s): %d events, %d qualifying weeks",
        pattern_type, pattern_label, user_id or "all", len(rows), len(weeks),
    )
    return weeks
