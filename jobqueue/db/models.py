"""
SQLAlchemy database models.
Defines the jobs table, the single source of truth for queue state.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobqueue.constants import DEFAULT_MAX_ATTEMPTS, DEFAULT_PRIORITY, JobStatus

# Partial index predicate: keyed jobs that are pending or claimed
LIVE_IDEMPOTENCY_PREDICATE = text(
    "status IN ('pending', 'claimed') AND idempotency_key IS NOT NULL"
)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def new_job_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of work in the queue.

    This is the authoritative source of truth for job state.
    All lifecycle transitions are single-statement conditional updates
    against this table.

    Key constraints:
    - locked_by and locked_at are both set iff status is claimed
    - (type, idempotency_key) maps to at most one live (pending or claimed) job
    - attempts only increases on claim; manual retry resets it to 0
    """

    __tablename__ = "jobs"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_job_id,
    )

    # Payload discriminator and opaque payload body
    type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )

    # Status and priority
    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            name="job_status",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=JobStatus.PENDING,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
    )

    # Retry tracking
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_ATTEMPTS,
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Lock management
    locked_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Idempotency, scoped per type
    idempotency_key: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    __table_args__ = (
        # Claim selection: status filter, priority desc, created_at asc
        Index("ix_jobs_status_priority_created", "status", "priority", "created_at"),
        # Idempotency lookup
        Index("ix_jobs_type_idempotency", "type", "idempotency_key"),
        # At most one live job per (type, idempotency_key)
        Index(
            "uq_jobs_live_idempotency",
            "type",
            "idempotency_key",
            unique=True,
            postgresql_where=LIVE_IDEMPOTENCY_PREDICATE,
            sqlite_where=LIVE_IDEMPOTENCY_PREDICATE,
        ),
        # Stale-lock sweep
        Index("ix_jobs_status_locked_at", "status", "locked_at"),
    )

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, type={self.type}, "
            f"status={self.status}, attempts={self.attempts}/{self.max_attempts})"
        )
