"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> CLAIMED (claim)
    - CLAIMED -> COMPLETED (complete)
    - CLAIMED -> PENDING (fail with attempts left, or stale-lock reclamation)
    - CLAIMED -> FAILED (fail with attempt budget exhausted)
    - any -> PENDING (manual retry, attempts reset to 0)
    """

    PENDING = "pending"
    CLAIMED = "claimed"
    COMPLETED = "completed"
    FAILED = "failed"


LIVE_STATUSES: tuple[JobStatus, ...] = (JobStatus.PENDING, JobStatus.CLAIMED)
TERMINAL_STATUSES: tuple[JobStatus, ...] = (JobStatus.COMPLETED, JobStatus.FAILED)

# Default values
DEFAULT_PRIORITY = 0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_LOCK_TIMEOUT_SECONDS = 5 * 60
DEFAULT_PAGE_SIZE = 50

# API constants
API_JOBS_PREFIX = "/api/jobs"

# Metrics names
METRIC_QUEUE_DEPTH = "job_queue_depth"
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOBS_CLAIMED = "jobs_claimed_total"
METRIC_JOBS_FINISHED = "jobs_finished_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_LOCKS_RECLAIMED = "locks_reclaimed_total"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"
SPAN_RECLAIM_LOCKS = "reclaim_stale_locks"
