"""create task occurrences table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_create_task_occurrences"
down_revision = "0001_create_task_schedules"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_occurrences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "schedule_id",
            sa.Integer(),
            sa.ForeignKey("task_schedules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("occurrence_date", sa.Date(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("caregiver_id", sa.String(length=64), nullable=False),
        sa.Column("patient_id", sa.String(length=64), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(), nullable=False),
        sa.Column("deadline_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("schedule_id", "occurrence_date", name="uq_occurrence_schedule_date"),
    )
    op.create_index("ix_task_occurrences_status", "task_occurrences", ["status"], unique=False)
    op.create_index(
        "ix_task_occurrences_caregiver_scheduled",
        "task_occurrences",
        ["caregiver_id", "scheduled_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_task_occurrences_caregiver_scheduled", table_name="task_occurrences")
    op.drop_index("ix_task_occurrences_status", table_name="task_occurrences")
    op.drop_table("task_occurrences")
