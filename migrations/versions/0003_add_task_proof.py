"""add proof requirement and proof fields"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_task_proof"
down_revision = "0002_create_task_occurrences"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("task_schedules", sa.Column("proof_kind", sa.String(length=10), nullable=True))
    op.add_column(
        "task_occurrences", sa.Column("proof_requirement", sa.String(length=10), nullable=True)
    )
    op.add_column("task_occurrences", sa.Column("proof_kind", sa.String(length=10), nullable=True))
    op.add_column(
        "task_occurrences", sa.Column("proof_storage_path", sa.String(length=500), nullable=True)
    )
    op.add_column(
        "task_occurrences", sa.Column("proof_uploaded_by", sa.String(length=64), nullable=True)
    )
    op.add_column("task_occurrences", sa.Column("proof_uploaded_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    op.drop_column("task_occurrences", "proof_uploaded_at")
    op.drop_column("task_occurrences", "proof_uploaded_by")
    op.drop_column("task_occurrences", "proof_storage_path")
    op.drop_column("task_occurrences", "proof_kind")
    op.drop_column("task_occurrences", "proof_requirement")
    op.drop_column("task_schedules", "proof_kind")
