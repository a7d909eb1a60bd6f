"""
Reaper for stale job locks.

The reaper runs periodically to find claimed jobs whose lock is older than
the lock timeout and returns them to pending. This recovers jobs from
crashed or hung workers and gives at-least-once delivery.
"""

import asyncio
import logging
import signal

from jobqueue.config import get_settings
from jobqueue.constants import SPAN_RECLAIM_LOCKS
from jobqueue.db import JobRepository, close_db, get_session_context, init_db
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer

logger = logging.getLogger(__name__)


class Reaper:
    """
    Stale-lock reaper.

    Runs periodically to:
    1. Reset claimed jobs with a lock older than the timeout to pending
    2. Refresh the queue depth gauge
    3. Record reclaimed lock counts
    """

    def __init__(
        self,
        interval_seconds: float | None = None,
        lock_timeout_seconds: float | None = None,
    ):
        """
        Initialize the reaper.

        Args:
            interval_seconds: Seconds between reaper runs.
            lock_timeout_seconds: Lock age after which a claim is stale.
        """
        settings = get_settings()
        self.interval = interval_seconds or settings.reaper_interval_seconds
        self.lock_timeout = (
            lock_timeout_seconds
            if lock_timeout_seconds is not None
            else settings.lock_timeout_seconds
        )
        self._running = False
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Start the reaper loop."""
        logger.info(
            f"Reaper starting with interval {self.interval}s",
            extra={"lock_timeout_seconds": self.lock_timeout},
        )
        self._running = True

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Error in reaper loop: {e}")

            await asyncio.sleep(self.interval)

        logger.info("Reaper stopped")

    async def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._running = False

    async def run_once(self) -> int:
        """
        Reclaim stale locks once (also usable cron-style).

        Returns:
            Number of jobs reclaimed.
        """
        with get_tracer().start_as_current_span(SPAN_RECLAIM_LOCKS):
            async with get_session_context() as session:
                repo = JobRepository(session)
                count = await repo.reclaim_stale_locks(self.lock_timeout)
                depth = await repo.get_queue_depth()

        self._metrics.record_locks_reclaimed(count)
        self._metrics.update_queue_depth(depth)

        if count > 0:
            logger.info(f"Reclaimed {count} stale locks", extra={"queue_depth": depth})

        return count


async def run_async() -> None:
    """Run the reaper asynchronously."""
    setup_logging()
    await init_db()

    reaper = Reaper()

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(reaper.stop())
        )

    try:
        await reaper.start()
    finally:
        await close_db()


def run() -> None:
    """Run the reaper."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
