"""Learning stability - edit event ledger and pattern insights

Revision ID: 001
Revises:
Create Date: 2026-10-12
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Append-only ledger of user edits to AI drafts
    op.create_table(
        "edit_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("response_id", sa.String(64), nullable=False),
        sa.Column("pattern_type", sa.String(30), nullable=False, server_default="edit_type"),
        sa.Column("pattern_label", sa.String(50), nullable=False),
        sa.Column("original_text", sa.Text(), nullable=False),
        sa.Column("edited_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("edit_percentage", sa.Integer(), nullable=False),
        sa.Column("outcome_score", sa.Float(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("outcome_score >= 0 AND outcome_score <= 100", name="ck_edit_events_outcome_range"),
        sa.CheckConstraint("edit_percentage >= 0 AND edit_percentage <= 100", name="ck_edit_events_edit_range"),
    )
    op.create_index(
        "ix_edit_events_type_label_created",
        "edit_events",
        ["pattern_type", "pattern_label", "created_at"],
    )
    op.create_index("ix_edit_events_user_created", "edit_events", ["user_id", "created_at"])

    # One row per (pattern_type, pattern_value); written only by the recalculation path
    op.create_table(
        "pattern_insights",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("pattern_type", sa.String(30), nullable=False),
        sa.Column("pattern_value", sa.String(50), nullable=False),
        sa.Column("frequency", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success_rate", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("sample_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("first_occurrence", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("time_span_days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("threshold_met", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("stability_score", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("pattern_variance", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("stability_validated", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("pattern_drift_detected", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("weekly_success_rates", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("pattern_type", "pattern_value", name="uq_pattern_insights_type_value"),
    )
    op.create_index(
        "ix_pattern_insights_type_threshold",
        "pattern_insights",
        ["pattern_type", "threshold_met"],
    )


def downgrade() -> None:
    op.drop_index("ix_pattern_insights_type_threshold", table_name="pattern_insights")
    op.drop_table("pattern_insights")

    op.drop_index("ix_edit_events_user_created", table_name="edit_events")
    op.drop_index("ix_edit_events_type_label_created", table_name="edit_events")
    op.drop_table("edit_events")
