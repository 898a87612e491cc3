"""Create the problem workflow tables.

Tables: users, categories, problems, workflow_logs, development_queue,
notifications, notification_preferences.

Revision ID: 0001_workflow_core
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "0001_workflow_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PROBLEM_STATUSES = (
    "'Proposed','Under Review','Priority Queue','In Development','Completed','Rejected'"
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default="user", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("role IN ('user','admin')", name="users_role_check"),
    )

    op.create_table(
        "categories",
        sa.Column("id", UUID(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default="0", nullable=False),
    )

    op.create_table(
        "problems",
        sa.Column(
            "id",
            UUID(),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="Proposed", nullable=False),
        sa.Column("vote_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "category_id", UUID(), sa.ForeignKey("categories.id"), nullable=True
        ),
        sa.Column("proposer_id", UUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            f"status IN ({PROBLEM_STATUSES})", name="problems_status_check"
        ),
        sa.CheckConstraint("vote_count >= 0", name="problems_vote_count_check"),
    )
    op.create_index("idx_problems_status", "problems", ["status"])

    op.create_table(
        "workflow_logs",
        sa.Column(
            "id",
            UUID(),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column(
            "problem_id",
            UUID(),
            sa.ForeignKey("problems.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("previous_status", sa.Text(), nullable=False),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("trigger_type", sa.Text(), nullable=False),
        sa.Column("triggered_by", UUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("vote_count_at_change", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "trigger_type IN ('milestone_triggered','admin_override')",
            name="workflow_logs_trigger_type_check",
        ),
        sa.CheckConstraint(
            "previous_status <> new_status",
            name="workflow_logs_status_changed_check",
        ),
    )
    op.create_index(
        "idx_workflow_logs_problem_created",
        "workflow_logs",
        ["problem_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "development_queue",
        sa.Column(
            "id",
            UUID(),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column(
            "problem_id",
            UUID(),
            sa.ForeignKey("problems.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("priority", sa.Text(), server_default="medium", nullable=False),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), server_default="queued", nullable=False),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("estimated_completion", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("added_by", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "priority IN ('urgent','high','medium','low')",
            name="development_queue_priority_check",
        ),
        sa.CheckConstraint(
            "status IN ('queued','in_progress','completed','blocked')",
            name="development_queue_status_check",
        ),
        sa.CheckConstraint(
            "queue_position >= 1", name="development_queue_position_check"
        ),
    )
    op.create_index(
        "idx_development_queue_position", "development_queue", ["queue_position"]
    )

    op.create_table(
        "notifications",
        sa.Column(
            "id",
            UUID(),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "problem_id",
            UUID(),
            sa.ForeignKey("problems.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("notification_type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", JSONB(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_notifications_user_unread", "notifications", ["user_id", "is_read"]
    )

    op.create_table(
        "notification_preferences",
        sa.Column(
            "user_id",
            UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("status_changes", sa.Boolean(), server_default="true", nullable=False),
        sa.Column(
            "vote_milestones", sa.Boolean(), server_default="true", nullable=False
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("notification_preferences")
    op.drop_index("idx_notifications_user_unread", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_development_queue_position", table_name="development_queue")
    op.drop_table("development_queue")
    op.drop_index("idx_workflow_logs_problem_created", table_name="workflow_logs")
    op.drop_table("workflow_logs")
    op.drop_index("idx_problems_status", table_name="problems")
    op.drop_table("problems")
    op.drop_table("categories")
    op.drop_table("users")
