"""Create anti-cheat tables

Revision ID: 7c2e41d9a3f0
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e41d9a3f0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _now_column(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create signal sources, command journal, metrics, trust and audit tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("avatar_hash", sa.String(100), nullable=True),
        _now_column("created_at", nullable=True),
    )

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("messages_count", sa.Integer(), nullable=True),
        _now_column("updated_at", nullable=True),
    )

    op.create_table(
        "command_history",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("guild_id", sa.String(255), nullable=False),
        sa.Column("command_name", sa.String(100), nullable=False),
        _now_column("executed_at"),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
    )
    op.create_index(
        "ix_command_history_user_time", "command_history", ["user_id", "executed_at"]
    )
    op.create_index(
        "ix_command_history_command_time",
        "command_history",
        ["command_name", "executed_at"],
    )
    op.create_index("ix_command_history_time", "command_history", ["executed_at"])

    op.create_table(
        "rate_limit_violations",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("guild_id", sa.String(255), nullable=False),
        sa.Column("command_name", sa.String(100), nullable=True),
        sa.Column("violation_type", sa.String(50), nullable=True),
        _now_column("occurred_at"),
    )
    op.create_index(
        "ix_rate_limit_violations_user_time",
        "rate_limit_violations",
        ["user_id", "occurred_at"],
    )
    op.create_index(
        "ix_rate_limit_violations_time", "rate_limit_violations", ["occurred_at"]
    )

    op.create_table(
        "user_behavior_metrics",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.String(255), nullable=False),
        sa.Column("total_commands", sa.Integer(), nullable=False),
        sa.Column("avg_command_interval", sa.Integer(), nullable=True),
        sa.Column("stddev_command_interval", sa.Integer(), nullable=True),
        sa.Column("coefficient_variation", sa.Integer(), nullable=True),
        sa.Column("last_command_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_analysis_at", sa.DateTime(timezone=True), nullable=True),
        _now_column("updated_at", nullable=True),
    )
    op.create_index(
        "ix_user_behavior_metrics_cv", "user_behavior_metrics", ["coefficient_variation"]
    )
    op.create_index(
        "ix_user_behavior_metrics_guild", "user_behavior_metrics", ["guild_id"]
    )

    op.create_table(
        "trust_scores",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.String(255), primary_key=True),
        sa.Column("score", sa.Integer(), nullable=False, server_default="500"),
        sa.Column("account_factor_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("behavioral_history_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("social_signal_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reason", sa.Text(), nullable=True),
        sa.Column("last_violation_at", sa.DateTime(timezone=True), nullable=True),
        _now_column("updated_at", nullable=True),
        sa.CheckConstraint("score BETWEEN 0 AND 1000", name="ck_trust_scores_range"),
    )

    op.create_table(
        "trust_score_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("guild_id", sa.String(255), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("old_score", sa.Integer(), nullable=False),
        sa.Column("new_score", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        _now_column("created_at"),
    )
    op.create_index(
        "ix_trust_score_events_user_guild",
        "trust_score_events",
        ["user_id", "guild_id", "created_at"],
    )

    op.create_table(
        "suspicion_scores",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("guild_id", sa.String(255), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("timing_score", sa.Integer(), nullable=False),
        sa.Column("behavioral_score", sa.Integer(), nullable=False),
        sa.Column("social_score", sa.Integer(), nullable=False),
        sa.Column("account_score", sa.Integer(), nullable=False),
        sa.Column("rate_limit_score", sa.Integer(), nullable=False),
        sa.Column("recommendation", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        _now_column("detected_at"),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_suspicion_scores_user_detected", "suspicion_scores", ["user_id", "detected_at"]
    )
    op.create_index(
        "ix_suspicion_scores_active",
        "suspicion_scores",
        ["user_id", "resolved", "detected_at"],
    )
    op.create_index(
        "ix_suspicion_scores_high", "suspicion_scores", ["total_score", "detected_at"]
    )


def downgrade() -> None:
    """Drop every anti-cheat table."""
    op.drop_index("ix_suspicion_scores_high", table_name="suspicion_scores")
    op.drop_index("ix_suspicion_scores_active", table_name="suspicion_scores")
    op.drop_index("ix_suspicion_scores_user_detected", table_name="suspicion_scores")
    op.drop_table("suspicion_scores")

    op.drop_index("ix_trust_score_events_user_guild", table_name="trust_score_events")
    op.drop_table("trust_score_events")
    op.drop_table("trust_scores")

    op.drop_index("ix_user_behavior_metrics_guild", table_name="user_behavior_metrics")
    op.drop_index("ix_user_behavior_metrics_cv", table_name="user_behavior_metrics")
    op.drop_table("user_behavior_metrics")

    op.drop_index("ix_rate_limit_violations_time", table_name="rate_limit_violations")
    op.drop_index(
        "ix_rate_limit_violations_user_time", table_name="rate_limit_violations"
    )
    op.drop_table("rate_limit_violations")

    op.drop_index("ix_command_history_time", table_name="command_history")
    op.drop_index("ix_command_history_command_time", table_name="command_history")
    op.drop_index("ix_command_history_user_time", table_name="command_history")
    op.drop_table("command_history")

    op.drop_table("user_stats")
    op.drop_table("users")
