"""Initial schema with jobs table

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String(16),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default="3"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("locked_by", sa.String(255), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'claimed', 'completed', 'failed')",
            name="job_status",
        ),
    )

    # Claim selection and idempotency lookup
    op.create_index(
        "ix_jobs_status_priority_created",
        "jobs",
        ["status", "priority", "created_at"],
    )
    op.create_index("ix_jobs_type_idempotency", "jobs", ["type", "idempotency_key"])

    # Stale-lock sweep
    op.create_index("ix_jobs_status_locked_at", "jobs", ["status", "locked_at"])

    # At most one live job per (type, idempotency_key)
    op.execute("""
        CREATE UNIQUE INDEX uq_jobs_live_idempotency
        ON jobs (type, idempotency_key)
        WHERE status IN ('pending', 'claimed') AND idempotency_key IS NOT NULL
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_jobs_live_idempotency")
    op.drop_index("ix_jobs_status_locked_at")
    op.drop_index("ix_jobs_type_idempotency")
    op.drop_index("ix_jobs_status_priority_created")
    op.drop_table("jobs")
