"""
EditEvent model - append-only ledger of user edits to AI drafts.
Each row carries the outcome score derived from how much of the draft the
user changed; PatternInsight aggregates are rebuilt from this table.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Float, Integer, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from src.database import Base
from src.schemas.learning import DEFAULT_PATTERN_TYPE


class EditEvent(Base):
    __tablename__ = "edit_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    response_id: Mapped[str] = mapped_column(String(64), nullable=False)

    pattern_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DEFAULT_PATTERN_TYPE
    )  # insight family; PatternInsight is keyed by (pattern_type, pattern_label)

    pattern_label: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # tone, content, length, structure, mixed, or a named pattern

    original_text: Mapped[str] = mapped_column(Text, nullable=False)
    edited_text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    edit_percentage: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-100
    outcome_score: Mapped[float] = mapped_column(Float, nullable=False)  # 100, 75, 25, 0

    user_id: Mapped[Optional[str]] = mapped_column(String(64))  # NULL = global

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_edit_events_type_label_created", "pattern_type", "pattern_label", "created_at"),
        Index("ix_edit_events_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EditEvent {self.pattern_label} score={self.outcome_score}>"
