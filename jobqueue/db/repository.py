"""
Job repository for database operations.
Implements the queue engine: every state transition is a single statement
against the jobs table, so no in-process locking is needed.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import Any

from sqlalchemy import DateTime, and_, case, delete, func, literal, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from jobqueue.config import get_settings
from jobqueue.constants import LIVE_STATUSES, TERMINAL_STATUSES, JobStatus
from jobqueue.db.models import LIVE_IDEMPOTENCY_PREDICATE, Job, new_job_id, utcnow
from jobqueue.errors import (
    IdempotencyConflictError,
    JobQueueError,
    JobStateError,
    LockNotHeldError,
)
from jobqueue.types.job import ClaimResult, EnqueueOptions, JobFilter, JobStats
from jobqueue.types.payloads import JobPayload, dump_payload, parse_payload

logger = logging.getLogger(__name__)

jobs_table = Job.__table__


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Enqueue with per-type idempotency keys
    - Claim via a single conditional UPDATE (FOR UPDATE SKIP LOCKED on PostgreSQL)
    - Complete / fail with bounded retry
    - Stale-lock reclamation
    - Listing, stats and admin overrides

    The caller owns the transaction and commits after each operation.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session
        self._settings = get_settings()

    @property
    def _dialect(self) -> str:
        return self._session.get_bind().dialect.name

    async def _execute_returning(self, stmt: Any) -> Sequence[Job]:
        """Run an INSERT/UPDATE and load the returned rows as fresh Job objects."""
        orm_stmt = (
            select(Job)
            .from_statement(stmt.returning(*jobs_table.c))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(orm_stmt)
        return result.scalars().all()

    async def _execute_one(self, stmt: Any) -> Job | None:
        jobs = await self._execute_returning(stmt)
        return jobs[0] if jobs else None

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def _insert(self) -> Any:
        if self._dialect == "postgresql":
            return postgresql.insert(jobs_table)
        if self._dialect == "sqlite":
            return sqlite.insert(jobs_table)
        raise JobQueueError(f"Unsupported database dialect: {self._dialect}")

    async def enqueue(
        self,
        payload: JobPayload | dict[str, Any],
        options: EnqueueOptions | None = None,
    ) -> tuple[Job, bool]:
        """
        Validate and insert a new pending job.

        When an idempotency key is supplied and a live job with the same
        (type, key) exists, that job is returned unchanged. Completed and
        failed jobs do not block reuse of the key.

        Args:
            payload: The tagged payload, as a model or raw mapping.
            options: Priority, attempt budget and idempotency key. Unset
                fields use default_priority and default_max_attempts.

        Returns:
            Tuple of (Job, created) where created is False for an idempotent hit.

        Raises:
            pydantic.ValidationError: If the payload is malformed.
        """
        payload = parse_payload(payload)
        options = options or EnqueueOptions()
        priority = (
            options.priority
            if options.priority is not None
            else self._settings.default_priority
        )
        max_attempts = (
            options.max_attempts
            if options.max_attempts is not None
            else self._settings.default_max_attempts
        )
        key = options.idempotency_key

        if key is not None:
            existing = await self.get_live_job_by_idempotency_key(payload.type, key)
            if existing is not None:
                logger.info(
                    "Returned existing job (idempotent)",
                    extra={"job_id": existing.id, "job_type": payload.type},
                )
                return existing, False

        stmt = (
            self._insert()
            .values(
                id=new_job_id(),
                type=payload.type,
                payload=dump_payload(payload),
                status=JobStatus.PENDING,
                priority=priority,
                attempts=0,
                max_attempts=max_attempts,
                idempotency_key=key,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(
                index_elements=["type", "idempotency_key"],
                index_where=LIVE_IDEMPOTENCY_PREDICATE,
            )
        )
        job = await self._execute_one(stmt)

        if job is not None:
            logger.info(
                "Enqueued job",
                extra={
                    "job_id": job.id,
                    "job_type": job.type,
                    "priority": job.priority,
                },
            )
            return job, True

        # Lost an insert race against a concurrent submission with the same key
        existing = await self.get_live_job_by_idempotency_key(payload.type, key)
        if existing is None:
            raise JobQueueError("Live job should exist after idempotency conflict")

        logger.info(
            "Returned existing job (idempotent, concurrent insert)",
            extra={"job_id": existing.id, "job_type": payload.type},
        )
        return existing, False

    async def get_live_job_by_idempotency_key(
        self,
        job_type: str,
        idempotency_key: str,
    ) -> Job | None:
        """
        Get the pending or claimed job holding an idempotency key.

        Args:
            job_type: The payload type the key is scoped to.
            idempotency_key: The idempotency key.

        Returns:
            The live Job or None.
        """
        stmt = (
            select(Job)
            .where(
                and_(
                    Job.type == job_type,
                    Job.idempotency_key == idempotency_key,
                    Job.status.in_(LIVE_STATUSES),
                )
            )
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    async def claim(
        self,
        worker_id: str,
        job_types: Iterable[str] | None = None,
    ) -> ClaimResult | None:
        """
        Atomically claim the next pending job.

        Selection (highest priority, then oldest) and the transition to
        claimed happen in one UPDATE statement, so two concurrent callers
        can never both claim the same row.

        Args:
            worker_id: Opaque identity of the claiming worker.
            job_types: Optional restriction to these payload types.

        Returns:
            The claimed job and its decoded payload, or None if nothing is pending.
        """
        now = utcnow()

        # Aliased so the subquery is not correlated to the outer UPDATE
        next_job = aliased(Job, name="next_job")

        candidate = select(next_job.id).where(next_job.status == JobStatus.PENDING)
        if job_types is not None:
            types = list(job_types)
            if not types:
                return None
            candidate = candidate.where(next_job.type.in_(types))

        candidate = (
            candidate.order_by(next_job.priority.desc(), next_job.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        stmt = (
            update(jobs_table)
            .where(
                and_(
                    Job.status == JobStatus.PENDING,
                    Job.id == candidate,
                )
            )
            .values(
                status=JobStatus.CLAIMED,
                locked_by=worker_id,
                locked_at=now,
                claimed_at=now,
                attempts=Job.attempts + 1,
            )
        )
        job = await self._execute_one(stmt)

        if job is None:
            return None

        logger.info(
            "Claimed job",
            extra={
                "job_id": job.id,
                "job_type": job.type,
                "worker_id": worker_id,
                "attempt": job.attempts,
            },
        )
        return ClaimResult(job=job, payload=parse_payload(job.payload))

    # ------------------------------------------------------------------
    # Complete / Fail
    # ------------------------------------------------------------------

    def _claimed_by(self, job_id: str, worker_id: str | None) -> Any:
        conditions = [Job.id == job_id, Job.status == JobStatus.CLAIMED]
        if worker_id is not None:
            conditions.append(Job.locked_by == worker_id)
        return and_(*conditions)

    async def _explain_miss(self, job_id: str, worker_id: str | None) -> None:
        """
        Work out why a conditional outcome update matched no row.

        Returns quietly when the job does not exist; raises otherwise.
        """
        job = await self.get_job(job_id)
        if job is None:
            return

        if job.status != JobStatus.CLAIMED:
            raise JobStateError(job_id, job.status)

        logger.warning(
            "Worker doesn't hold job lock",
            extra={"job_id": job_id, "worker_id": worker_id, "locked_by": job.locked_by},
        )
        raise LockNotHeldError(job_id, worker_id or "", job.locked_by)

    async def complete(self, job_id: str, worker_id: str | None = None) -> Job | None:
        """
        Mark a claimed job as completed and release its lock.

        Args:
            job_id: The job id.
            worker_id: If given, must be the current lock holder.

        Returns:
            The updated Job, or None if the id is unknown.

        Raises:
            JobStateError: If the job is not claimed.
            LockNotHeldError: If worker_id does not hold the lock.
        """
        stmt = (
            update(jobs_table)
            .where(self._claimed_by(job_id, worker_id))
            .values(
                status=JobStatus.COMPLETED,
                completed_at=utcnow(),
                locked_by=None,
                locked_at=None,
            )
        )
        job = await self._execute_one(stmt)

        if job is None:
            await self._explain_miss(job_id, worker_id)
            return None

        logger.info(
            "Job completed",
            extra={"job_id": job_id, "attempt": job.attempts},
        )
        return job

    async def fail(
        self,
        job_id: str,
        error: str,
        worker_id: str | None = None,
    ) -> Job | None:
        """
        Record a failed attempt. Either requeue the job or fail it terminally.

        The retry decision (attempts >= max_attempts) is evaluated inside the
        UPDATE itself. A requeued job keeps the attempt count from its claim
        and competes immediately on priority and age; there is no backoff.

        Args:
            job_id: The job id.
            error: Diagnostic message stored as last_error.
            worker_id: If given, must be the current lock holder.

        Returns:
            The updated Job, or None if the id is unknown.

        Raises:
            JobStateError: If the job is not claimed.
            LockNotHeldError: If worker_id does not hold the lock.
        """
        exhausted = Job.attempts >= Job.max_attempts
        stmt = (
            update(jobs_table)
            .where(self._claimed_by(job_id, worker_id))
            .values(
                status=case(
                    (exhausted, JobStatus.FAILED.value),
                    else_=JobStatus.PENDING.value,
                ),
                completed_at=case(
                    (exhausted, literal(utcnow(), DateTime(timezone=True))),
                    else_=Job.completed_at,
                ),
                last_error=error,
                locked_by=None,
                locked_at=None,
            )
        )
        job = await self._execute_one(stmt)

        if job is None:
            await self._explain_miss(job_id, worker_id)
            return None

        if job.status == JobStatus.FAILED:
            logger.warning(
                f"Job failed after {job.attempts} attempts",
                extra={"job_id": job_id, "error": error},
            )
        else:
            logger.info(
                "Job queued for retry",
                extra={"job_id": job_id, "attempt": job.attempts, "error": error},
            )
        return job

    # ------------------------------------------------------------------
    # Stale-lock reclamation
    # ------------------------------------------------------------------

    async def reclaim_stale_locks(self, timeout_seconds: float | None = None) -> int:
        """
        Return claimed jobs whose lock is older than the timeout to pending.

        Attempts are left unchanged. A slow but alive worker can lose its
        job this way, so execution is at-least-once.

        Args:
            timeout_seconds: Lock age threshold. Defaults to lock_timeout_seconds.

        Returns:
            Number of reclaimed jobs.
        """
        if timeout_seconds is None:
            timeout_seconds = self._settings.lock_timeout_seconds

        cutoff = utcnow() - timedelta(seconds=timeout_seconds)

        stmt = (
            update(jobs_table)
            .where(
                and_(
                    Job.status == JobStatus.CLAIMED,
                    Job.locked_at < cutoff,
                )
            )
            .values(
                status=JobStatus.PENDING,
                locked_by=None,
                locked_at=None,
            )
        )

        result = await self._session.execute(stmt)
        count = result.rowcount

        if count > 0:
            logger.info(
                f"Reclaimed {count} jobs with stale locks",
                extra={"timeout_seconds": timeout_seconds},
            )

        return count

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The Job or None if not found.
        """
        stmt = (
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_jobs(
        self,
        job_filter: JobFilter | None = None,
    ) -> tuple[Sequence[Job], int]:
        """
        List jobs ordered by priority (desc) then age (oldest first).

        Offset paging is not stable under concurrent writes; it is meant for
        administrative listing, never for work distribution.

        Args:
            job_filter: Optional status/type filter and paging.

        Returns:
            Tuple of (jobs, total_count).
        """
        job_filter = job_filter or JobFilter()

        limit = job_filter.limit
        if limit is None:
            limit = self._settings.default_page_size
        limit = max(1, min(limit, self._settings.max_page_size))
        offset = max(0, job_filter.offset)

        filters = []
        if job_filter.status is not None:
            filters.append(Job.status == job_filter.status)
        if job_filter.type is not None:
            filters.append(Job.type == job_filter.type)

        count_stmt = select(func.count()).select_from(Job).where(*filters)
        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(Job)
            .where(*filters)
            .order_by(Job.priority.desc(), Job.created_at.asc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all(), total

    async def get_stats(self) -> JobStats:
        """
        Get job counts per status plus the total.

        Returns:
            JobStats with zero for absent statuses.
        """
        stmt = select(Job.status, func.count()).group_by(Job.status)
        result = await self._session.execute(stmt)

        counts = {JobStatus(status).value: count for status, count in result.all()}
        return JobStats(**counts, total=sum(counts.values()))

    async def get_queue_depth(self) -> int:
        """
        Get the number of pending jobs.

        Returns:
            Number of pending jobs.
        """
        stmt = select(func.count()).select_from(Job).where(Job.status == JobStatus.PENDING)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def retry_job(self, job_id: str) -> Job | None:
        """
        Force a job back to pending from any status, resetting its attempts.

        Unlike automatic retry, this restores the full attempt budget and
        clears last_error, the lock and completed_at.

        Args:
            job_id: The job id.

        Returns:
            The updated Job, or None if not found.

        Raises:
            IdempotencyConflictError: If another live job now holds this job's key.
        """
        current = await self.get_job(job_id)
        if current is None:
            return None

        if current.idempotency_key is not None and current.status in TERMINAL_STATUSES:
            holder = await self.get_live_job_by_idempotency_key(
                current.type, current.idempotency_key
            )
            if holder is not None and holder.id != job_id:
                raise IdempotencyConflictError(job_id, holder.id)

        stmt = (
            update(jobs_table)
            .where(Job.id == job_id)
            .values(
                status=JobStatus.PENDING,
                attempts=0,
                last_error=None,
                locked_by=None,
                locked_at=None,
                completed_at=None,
            )
        )
        job = await self._execute_one(stmt)

        if job:
            logger.info(
                "Job manually retried",
                extra={"job_id": job_id, "previous_status": current.status.value},
            )

        return job

    async def delete_job(self, job_id: str) -> bool:
        """
        Delete a job regardless of status.

        Args:
            job_id: The job id.

        Returns:
            True if a row was removed.
        """
        result = await self._session.execute(
            delete(jobs_table).where(Job.id == job_id)
        )
        deleted = result.rowcount > 0

        if deleted:
            logger.info("Job deleted", extra={"job_id": job_id})

        return deleted

    async def purge_completed(self) -> int:
        """
        Delete every completed job. Failed jobs are kept.

        Returns:
            Number of removed jobs.
        """
        result = await self._session.execute(
            delete(jobs_table).where(Job.status == JobStatus.COMPLETED)
        )
        count = result.rowcount

        if count > 0:
            logger.info(f"Purged {count} completed jobs")

        return count
