"""
Job management routes.

A thin façade over JobRepository: each route performs one queue operation
and maps absent results to 404.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from jobqueue.config import get_settings
from jobqueue.constants import API_JOBS_PREFIX, JobStatus
from jobqueue.db import JobRepository, get_async_session
from jobqueue.db.models import Job
from jobqueue.errors import IdempotencyConflictError
from jobqueue.observability.metrics import get_metrics
from jobqueue.types.api import (
    EnqueueJobRequest,
    JobListResponse,
    JobResponse,
    PurgeResponse,
)
from jobqueue.types.job import EnqueueOptions, JobFilter, JobStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix=API_JOBS_PREFIX, tags=["Jobs"])

SessionDep = Annotated[AsyncSession, Depends(get_async_session)]


def _job_to_response(job: Job) -> JobResponse:
    """Convert a Job model to a JobResponse."""
    return JobResponse.model_validate(job)


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Job {job_id} not found",
    )


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enqueue a job",
    description="Enqueue a job. A live job with the same type and idempotency key is returned instead.",
)
async def enqueue_job(
    request: EnqueueJobRequest,
    response: Response,
    session: SessionDep,
) -> JobResponse:
    """
    Enqueue a new job.

    Returns 201 for a new job and 200 when an idempotency key matched a
    pending or claimed job.
    """
    repo = JobRepository(session)

    job, created = await repo.enqueue(
        request.payload,
        EnqueueOptions(
            priority=request.priority,
            max_attempts=request.max_attempts,
            idempotency_key=request.idempotency_key,
        ),
    )
    await session.commit()

    if created:
        get_metrics().record_job_enqueued(job.type)
    else:
        response.status_code = status.HTTP_200_OK

    return _job_to_response(job)


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="List jobs by priority then age, with optional status and type filters.",
)
async def list_jobs(
    session: SessionDep,
    status_filter: Annotated[JobStatus | None, Query(alias="status")] = None,
    job_type: Annotated[str | None, Query(alias="type")] = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> JobListResponse:
    """List a page of jobs."""
    settings = get_settings()
    repo = JobRepository(session)

    job_filter = JobFilter(status=status_filter, type=job_type, limit=limit, offset=offset)
    jobs, total = await repo.get_jobs(job_filter)

    return JobListResponse(
        jobs=[_job_to_response(job) for job in jobs],
        total=total,
        limit=min(limit or settings.default_page_size, settings.max_page_size),
        offset=offset,
    )


@router.get(
    "/stats",
    response_model=JobStats,
    summary="Get job statistics",
    description="Counts of jobs per status plus the total.",
)
async def get_job_stats(session: SessionDep) -> JobStats:
    """Get job counts per status."""
    repo = JobRepository(session)
    stats = await repo.get_stats()
    get_metrics().update_queue_depth(stats.pending)
    return stats


@router.post(
    "/purge",
    response_model=PurgeResponse,
    summary="Purge completed jobs",
    description="Delete every completed job. Failed jobs are kept.",
)
async def purge_completed_jobs(session: SessionDep) -> PurgeResponse:
    """Delete completed jobs."""
    repo = JobRepository(session)
    purged = await repo.purge_completed()
    await session.commit()
    return PurgeResponse(purged=purged)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job details",
)
async def get_job(job_id: str, session: SessionDep) -> JobResponse:
    """Get a job by ID."""
    repo = JobRepository(session)
    job = await repo.get_job(job_id)

    if job is None:
        raise _not_found(job_id)

    return _job_to_response(job)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a job",
)
async def delete_job(job_id: str, session: SessionDep) -> Response:
    """Delete a job regardless of its status."""
    repo = JobRepository(session)
    deleted = await repo.delete_job(job_id)
    await session.commit()

    if not deleted:
        raise _not_found(job_id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{job_id}/retry",
    response_model=JobResponse,
    summary="Retry a job",
    description="Force a job back to pending from any status and reset its attempts.",
)
async def retry_job(job_id: str, session: SessionDep) -> JobResponse:
    """
    Manually retry a job.

    Raises:
        HTTPException: 404 if the job is unknown, 409 if its idempotency key
            is held by another live job.
    """
    repo = JobRepository(session)

    try:
        job = await repo.retry_job(job_id)
    except IdempotencyConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    await session.commit()

    if job is None:
        raise _not_found(job_id)

    return _job_to_response(job)
