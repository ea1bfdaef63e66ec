"""
Edit event store - records every user edit of an AI draft with its outcome
score, then refreshes the owning pattern insight in the same transaction.

Outcome scoring (step bands, not continuous):
    0% edited      -> 100
    <= 20% edited  -> 75
    <= 70% edited  -> 25
    otherwise / discarded -> 0
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.edit_event import EditEvent
from src.schemas.learning import DEFAULT_PATTERN_TYPE, LearningThresholds
from src.services.pattern_insights import upsert_pattern_insight
from src.utils.learning_errors import LearningStorageError, LearningValidationError
from src.utils.timezone import ensure_utc, utc_now

logger = logging.getLogger(__name__)

MAX_PATTERN_LABEL_LENGTH = 50
MAX_PATTERN_TYPE_LENGTH = 30
MAX_RESPONSE_ID_LENGTH = 64
MAX_USER_ID_LENGTH = 64


def calculate_edit_percentage(original_text: str, edited_text: str) -> int:
    """
    Share of the draft the user changed, as an integer percentage.

    Word-level positional diff: words that differ at the same index, plus the
    difference in word count, over the longer draft's word count. Halves round
    up, so 0.5% is already an edit and 20.5% is already a major rewrite.
    """
    if original_text == edited_text:
        return 0
    if not edited_text or not edited_text.strip():
        return 100

    original_words = original_text.split()
    edited_words = edited_text.split()
    longest = max(len(original_words), len(edited_words))
    if longest == 0:
        return 0

    changes = abs(len(original_words) - len(edited_words))
    for original_word, edited_word in zip(original_words, edited_words):
        if original_word != edited_word:
            changes += 1

    # floor(changes / longest * 100 + 0.5) in integer arithmetic
    percentage = (200 * changes + longest) // (2 * longest)
    return min(percentage, 100)


def calculate_outcome_score(edit_percentage: int) -> int:
    """Map an edit percentage onto the success bands."""
    if edit_percentage == 0:
        return 100
    if edit_percentage <= 20:
        return 75
    if edit_percentage <= 70:
        return 25
    return 0


def _check_length(name: str, value: str, limit: int) -> None:
    if len(value) > limit:
        raise LearningValidationError(f"{name} longer than {limit} characters")


def _validate_edit(
    response_id: str,
    original_text: str,
    edited_text: str,
    pattern_label: str,
    pattern_type: str,
    user_id: Optional[str],
    outcome_score: Optional[float],
) -> None:
    if not isinstance(response_id, str) or not response_id.strip():
        raise LearningValidationError("response_id is required")
    _check_length("response_id", response_id, MAX_RESPONSE_ID_LENGTH)
    if not isinstance(pattern_label, str) or not pattern_label.strip():
        raise LearningValidationError("pattern_label is required")
    _check_length("pattern_label", pattern_label.strip(), MAX_PATTERN_LABEL_LENGTH)
    if not isinstance(pattern_type, str) or not pattern_type.strip():
        raise LearningValidationError("pattern_type is required")
    _check_length("pattern_type", pattern_type.strip(), MAX_PATTERN_TYPE_LENGTH)
    if user_id is not None:
        if not isinstance(user_id, str):
            raise LearningValidationError("user_id must be a string")
        _check_length("user_id", user_id, MAX_USER_ID_LENGTH)
    if not isinstance(original_text, str):
        raise LearningValidationError("original_text must be a string")
    if edited_text is not None and not isinstance(edited_text, str):
        raise LearningValidationError("edited_text must be a string")
    if outcome_score is not None:
        if isinstance(outcome_score, bool) or not isinstance(outcome_score, (int, float)):
            raise LearningValidationError("outcome_score must be a number")
        if not 0 <= outcome_score <= 100:
            raise LearningValidationError(
                f"outcome_score must be between 0 and 100, got {outcome_score}"
            )


async def record_edit_event(
    db: AsyncSession,
    response_id: str,
    original_text: str,
    edited_text: Optional[str],
    pattern_label: str,
    user_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    pattern_type: str = DEFAULT_PATTERN_TYPE,
    was_sent: bool = True,
    outcome_score: Optional[float] = None,
    now: Optional[datetime] = None,
    thresholds: Optional[LearningThresholds] = None,
) -> EditEvent:
    """
    Record a user's edit of a generated draft and update its pattern insight.

    Args:
        db: Session; committed on success, rolled back on storage failure
        response_id: Generated draft the edit belongs to
        original_text: Draft as generated
        edited_text: Draft as sent (None or blank = emptied)
        pattern_label: Edit type or named pattern (tone, content, length, ...)
        user_id: Editing user (None = unattributed)
        timestamp: When the edit happened; defaults to now
        pattern_type: Insight family the label belongs to
        was_sent: False when the draft was discarded; scores 0
        outcome_score: Pre-computed score for replayed edits (0-100)
        now: Reference time for the recalculation window

    Returns:
        The stored EditEvent

    Raises:
        LearningValidationError: malformed input, nothing written
        LearningStorageError: the ledger or insight write failed
    """
    try:
        _validate_edit(
            response_id, original_text, edited_text, pattern_label, pattern_type, user_id,
            outcome_score,
        )
    except LearningValidationError as e:
        logger.warning(
            "Rejected edit event for response %s: %s", response_id, str(e),
            extra={"response_id": response_id, "error_code": "invalid_edit"},
        )
        raise
    pattern_label = pattern_label.strip()
    pattern_type = pattern_type.strip()
    edited_text = edited_text or ""
    now = ensure_utc(now) if now else utc_now()
    occurred_at = ensure_utc(timestamp) if timestamp else now

    if was_sent:
        edit_percentage = calculate_edit_percentage(original_text, edited_text)
    else:
        edit_percentage = 100

    if outcome_score is None:
        score = calculate_outcome_score(edit_percentage)
    else:
        score = float(outcome_score)

    event = EditEvent(
        response_id=response_id,
        pattern_type=pattern_type,
        pattern_label=pattern_label,
        original_text=original_text,
        edited_text=edited_text,
        edit_percentage=edit_percentage,
        outcome_score=score,
        user_id=user_id,
        created_at=occurred_at,
    )

    try:
        db.add(event)
        await db.flush()
        await upsert_pattern_insight(
            db,
            pattern_type=pattern_type,
            pattern_value=pattern_label,
            score=score,
            occurred_at=occurred_at,
            now=now,
            thresholds=thresholds,
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Failed to record edit event for response %s (%s): %s",
            response_id, pattern_label, str(e),
            extra={"response_id": response_id, "pattern_value": pattern_label},
        )
        raise LearningStorageError(f"Could not record edit for {pattern_label}") from e
    except LearningStorageError:
        await db.rollback()
        raise

    logger.info(
        "Edit recorded: response=%s pattern=%s edited=%d%% score=%.0f",
        response_id, pattern_label, edit_percentage, score,
        extra={"response_id": response_id, "pattern_value": pattern_label, "user_id": user_id},
    )
    return event


async def get_edit_events(
    db: AsyncSession,
    pattern_label: str,
    user_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    pattern_type: str = DEFAULT_PATTERN_TYPE,
) -> list[EditEvent]:
    """
    Read the ledger for one pattern, oldest first.

    Args:
        db: Session to read from
        pattern_label: Pattern to read
        user_id: Restrict to one user (None = all users)
        since: Inclusive lower bound on created_at
        until: Inclusive upper bound on created_at
        pattern_type: Insight family the label belongs to
    """
    conditions = [
        EditEvent.pattern_type == pattern_type,
        EditEvent.pattern_label == pattern_label,
    ]
    if user_id:
        conditions.append(EditEvent.user_id == user_id)
    if since:
        conditions.append(EditEvent.created_at >= ensure_utc(since))
    if until:
        conditions.append(EditEvent.created_at <= ensure_utc(until))

    try:
        result = await db.execute(
            select(EditEvent).where(and_(*conditions)).order_by(EditEvent.created_at)
        )
    except SQLAlchemyError as e:
        raise LearningStorageError(f"Could not read edits for {pattern_label}") from e
    return list(result.scalars().all())
