"""create caregiver assignments and task schedules"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_task_schedules"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "caregiver_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("caregiver_id", sa.String(length=64), nullable=False),
        sa.Column("patient_id", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("caregiver_id", "patient_id", name="uq_assignment_pair"),
    )
    op.create_index(
        "ix_caregiver_assignments_caregiver_id", "caregiver_assignments", ["caregiver_id"], unique=False
    )

    op.create_table(
        "task_schedules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("caregiver_id", sa.String(length=64), nullable=False),
        sa.Column("patient_id", sa.String(length=64), nullable=False),
        sa.Column("window_start", sa.Date(), nullable=False),
        sa.Column("window_end", sa.Date(), nullable=False),
        sa.Column("time_of_day_start", sa.Time(), nullable=False),
        sa.Column("time_of_day_end", sa.Time(), nullable=False),
        sa.Column("frequency", sa.String(length=10), nullable=False, server_default="once"),
        sa.Column("weekdays", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_task_schedules_caregiver_id", "task_schedules", ["caregiver_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_schedules_caregiver_id", table_name="task_schedules")
    op.drop_table("task_schedules")
    op.drop_index("ix_caregiver_assignments_caregiver_id", table_name="caregiver_assignments")
    op.drop_table("caregiver_assignments")
