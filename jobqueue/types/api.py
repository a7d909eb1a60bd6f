"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from jobqueue.constants import JobStatus
from jobqueue.types.payloads import JobPayload


class EnqueueJobRequest(BaseModel):
    """Request body for enqueueing a job."""

    model_config = ConfigDict(populate_by_name=True)

    payload: JobPayload = Field(..., description="Tagged job payload")
    priority: int | None = Field(default=None, description="Higher is served first")
    max_attempts: int | None = Field(
        default=None,
        ge=1,
        alias="maxAttempts",
        description="Maximum claim attempts",
    )
    idempotency_key: str | None = Field(
        default=None,
        min_length=1,
        max_length=255,
        alias="idempotencyKey",
        description="Deduplicates submissions while a prior job is live",
    )


class JobResponse(BaseModel):
    """Full job details response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    payload: dict[str, Any]
    status: JobStatus
    priority: int
    attempts: int
    max_attempts: int
    last_error: str | None
    locked_by: str | None
    locked_at: datetime | None
    created_at: datetime
    claimed_at: datetime | None
    completed_at: datetime | None
    idempotency_key: str | None


class JobListResponse(BaseModel):
    """Page of jobs."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class PurgeResponse(BaseModel):
    """Response body after purging completed jobs."""

    purged: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime
