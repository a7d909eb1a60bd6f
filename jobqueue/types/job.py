"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from jobqueue.constants import JobStatus
from jobqueue.types.payloads import JobPayload

if TYPE_CHECKING:
    from jobqueue.db.models import Job


class EnqueueOptions(BaseModel):
    """Options accepted by enqueue. Unset fields fall back to the configured defaults."""

    priority: int | None = None
    max_attempts: int | None = Field(default=None, ge=1)
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=255)


class JobFilter(BaseModel):
    """Filter and paging parameters for listing jobs."""

    status: JobStatus | None = None
    type: str | None = None
    limit: int | None = None
    offset: int = 0


class JobStats(BaseModel):
    """Job counts per status."""

    pending: int = 0
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


@dataclass
class ClaimResult:
    """A freshly claimed job together with its decoded payload."""

    job: "Job"
    payload: JobPayload


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    Contains job metadata and the decoded payload.
    """

    job_id: str
    job_type: str
    attempt: int
    max_attempts: int
    payload: JobPayload
    worker_id: str
    locked_at: datetime | None

    @property
    def is_last_attempt(self) -> bool:
        """Check if a failure now would be terminal."""
        return self.attempt >= self.max_attempts

    @property
    def remaining_attempts(self) -> int:
        """Get remaining retry attempts."""
        return max(0, self.max_attempts - self.attempt)
