"""
Worker process for executing jobs.

The worker polls the queue, claims one job at a time, executes it, and
reports the outcome. Claims are atomic in the store, so any number of
workers can run side by side without coordinating with each other.
"""

import asyncio
import logging
import os
import signal
import time

from jobqueue.config import get_settings
from jobqueue.constants import SPAN_EXECUTE_JOB, JobStatus
from jobqueue.db import JobRepository, close_db, get_session_context, init_db
from jobqueue.errors import JobStateError
from jobqueue.observability.logging import bind_context, clear_context, setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer
from jobqueue.types.job import ClaimResult, JobContext
from jobqueue.worker.handlers import execute_job, list_handlers

logger = logging.getLogger(__name__)


def default_worker_id() -> str:
    """Hostname plus PID, unique per worker process."""
    return f"{os.uname().nodename}-{os.getpid()}"


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Atomic claim restricted to job types with a registered handler
    - Outcome reported with the worker id, so a reclaimed job is not
      completed by a worker that lost its lock
    - Graceful shutdown on SIGTERM/SIGINT
    """

    def __init__(
        self,
        worker_id: str | None = None,
        poll_interval: float | None = None,
    ):
        """
        Initialize the worker.

        Args:
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            poll_interval: Seconds between polls when queue is empty.
        """
        settings = get_settings()

        self.worker_id = worker_id or settings.worker_id or default_worker_id()
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds

        self._running = False
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Start the worker."""
        bind_context(worker_id=self.worker_id)
        logger.info(
            "Worker starting",
            extra={"handlers": list_handlers(), "poll_interval": self.poll_interval}
        )

        self._running = True

        while self._running:
            try:
                processed = await self.run_once()

                if not processed:
                    await asyncio.sleep(self.poll_interval)

            except Exception as e:
                logger.exception(f"Error in worker loop: {e}")
                await asyncio.sleep(self.poll_interval)

        logger.info("Worker stopped")
        clear_context()

    async def stop(self) -> None:
        """Stop the worker gracefully after the current job."""
        logger.info("Worker stopping")
        self._running = False

    async def run_once(self) -> bool:
        """
        Claim and execute at most one job.

        Returns:
            True if a job was claimed, False if nothing was pending.
        """
        async with get_session_context() as session:
            repo = JobRepository(session)
            claimed = await repo.claim(self.worker_id, job_types=list_handlers())

        if claimed is None:
            return False

        self._metrics.record_job_claimed(self.worker_id)
        await self._execute_job(claimed)
        return True

    async def _execute_job(self, claimed: ClaimResult) -> None:
        """
        Execute a claimed job and report its outcome.

        Args:
            claimed: The claimed job and its payload.
        """
        job = claimed.job
        start_time = time.monotonic()

        context = JobContext(
            job_id=job.id,
            job_type=job.type,
            attempt=job.attempts,
            max_attempts=job.max_attempts,
            payload=claimed.payload,
            worker_id=self.worker_id,
            locked_at=job.locked_at,
        )

        logger.info(
            "Executing job",
            extra={
                "job_id": job.id,
                "job_type": job.type,
                "attempt": context.attempt,
            }
        )

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("job_type", job.type)
            span.set_attribute("attempt", context.attempt)

            result = await execute_job(context)

        duration = time.monotonic() - start_time

        try:
            async with get_session_context() as session:
                repo = JobRepository(session)

                if result.success:
                    updated = await repo.complete(job.id, worker_id=self.worker_id)
                    outcome = "completed"
                else:
                    updated = await repo.fail(
                        job.id,
                        error=result.error or "Unknown error",
                        worker_id=self.worker_id,
                    )
                    if updated is not None and updated.status == JobStatus.FAILED:
                        outcome = "failed"
                    else:
                        outcome = "retried"

            if updated is None:
                # Deleted while running
                logger.warning(
                    "Outcome discarded, job no longer exists",
                    extra={"job_id": job.id}
                )
                outcome = "discarded"

        except JobStateError as e:
            # Lock was reclaimed while the job ran; the new holder reports the outcome
            logger.warning(
                "Outcome discarded, job no longer held by this worker",
                extra={"job_id": job.id, "reason": str(e)}
            )
            outcome = "discarded"

        logger.info(
            "Job finished",
            extra={
                "job_id": job.id,
                "outcome": outcome,
                "duration": f"{duration:.2f}s",
            }
        )
        self._metrics.record_job_finished(
            job_type=job.type,
            outcome=outcome,
            duration_seconds=duration,
        )


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    await init_db()

    worker = Worker()

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
