"""
PatternInsight model - durable learning summary per (pattern_type, pattern_value).
Only the edit-event recalculation path writes to this table; response
generation reads the rows that pass every validation gate.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from src.database import Base


class PatternInsight(Base):
    __tablename__ = "pattern_insights"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    pattern_type: Mapped[str] = mapped_column(String(30), nullable=False)  # edit_type, tone, ...
    pattern_value: Mapped[str] = mapped_column(String(50), nullable=False)

    # Accumulators (incremental path)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # 0-100
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recommendation: Mapped[Optional[str]] = mapped_column(Text)

    # Threshold gate
    first_occurrence: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    time_span_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    threshold_met: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Stability gate
    stability_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)  # 0.0-1.0
    pattern_variance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    stability_validated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pattern_drift_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weekly_success_rates: Mapped[Optional[list]] = mapped_column(JSONB)  # [85.0, 88.0, 82.0] oldest week first

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("pattern_type", "pattern_value", name="uq_pattern_insights_type_value"),
        Index("ix_pattern_insights_type_threshold", "pattern_type", "threshold_met"),
    )

    def __repr__(self) -> str:
        return (
            f"<PatternInsight {self.pattern_type}:{self.pattern_value} "
            f"n={self.sample_size} confidence={self.confidence:.0f} "
            f"stability={self.stability_score:.3f}>"
        )
