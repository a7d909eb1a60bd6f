"""
Type definitions for the job queue.
Contains payload variants and input/output types, grouped by module.
"""

from jobqueue.types.api import (
    EnqueueJobRequest,
    HealthResponse,
    JobListResponse,
    JobResponse,
    PurgeResponse,
)
from jobqueue.types.job import (
    ClaimResult,
    EnqueueOptions,
    JobContext,
    JobFilter,
    JobResult,
    JobStats,
)
from jobqueue.types.payloads import (
    ClaudeExtractionPayload,
    CreateFilePayload,
    DeleteFilePayload,
    EchoPayload,
    JobPayload,
    SyncAwsPayload,
    dump_payload,
    parse_payload,
)

__all__ = [
    # API types
    "EnqueueJobRequest",
    "JobResponse",
    "JobListResponse",
    "PurgeResponse",
    "HealthResponse",
    # Job types
    "EnqueueOptions",
    "JobFilter",
    "JobStats",
    "ClaimResult",
    "JobContext",
    "JobResult",
    # Payload types
    "JobPayload",
    "ClaudeExtractionPayload",
    "CreateFilePayload",
    "DeleteFilePayload",
    "SyncAwsPayload",
    "EchoPayload",
    "parse_payload",
    "dump_payload",
]
