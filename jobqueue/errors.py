"""
Engine exception types.

Unknown job ids are reported as absent results, not exceptions. Store
failures surface as SQLAlchemy exceptions and are never wrapped.
"""


class JobQueueError(Exception):
    """Base class for job queue errors."""


class JobStateError(JobQueueError):
    """Raised when an outcome is reported for a job that is not claimed."""

    def __init__(self, job_id: str, status: str, message: str | None = None):
        self.job_id = job_id
        self.status = status
        super().__init__(message or f"Job {job_id} is not claimed (status: {status})")


class LockNotHeldError(JobStateError):
    """Raised when the caller is not the worker holding the job's lock."""

    def __init__(self, job_id: str, worker_id: str, locked_by: str | None):
        self.worker_id = worker_id
        self.locked_by = locked_by
        super().__init__(
            job_id,
            "claimed",
            f"Job {job_id} is locked by {locked_by!r}, not {worker_id!r}",
        )


class IdempotencyConflictError(JobQueueError):
    """Raised when a manual retry would give one idempotency key two live jobs."""

    def __init__(self, job_id: str, live_job_id: str):
        self.job_id = job_id
        self.live_job_id = live_job_id
        super().__init__(
            f"Job {job_id} shares its idempotency key with live job {live_job_id}"
        )
