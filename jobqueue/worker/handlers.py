"""
Job handlers registry.

Handlers run under at-least-once delivery: a job whose lock goes stale is
handed to another worker, so handlers must tolerate running twice for the
same job. Executors for file, extraction and cloud-sync jobs live outside
this package and register themselves here.
"""

import logging
from collections.abc import Awaitable, Callable

from jobqueue.types.job import JobContext, JobResult
from jobqueue.types.payloads import EchoPayload

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[JobResult]]

# Handler registry, keyed by payload type
_handlers: dict[str, JobHandler] = {}


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a job handler.

    Args:
        job_type: The payload type this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("create_file")
        async def handle_create_file(context: JobContext) -> JobResult:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[job_type] = handler
        logger.info(f"Registered handler for job type: {job_type}")
        return handler
    return decorator


def unregister_handler(job_type: str) -> None:
    """Remove the handler for a job type, if any."""
    _handlers.pop(job_type, None)


def get_handler(job_type: str) -> JobHandler | None:
    """
    Get the handler for a job type.

    Args:
        job_type: The payload type.

    Returns:
        The handler function or None if not found.
    """
    return _handlers.get(job_type)


def list_handlers() -> list[str]:
    """List all registered job types."""
    return list(_handlers.keys())


@register_handler("echo")
async def handle_echo(context: JobContext) -> JobResult:
    """Return the payload message unchanged."""
    payload: EchoPayload = context.payload  # type: ignore[assignment]

    logger.info(
        "Echo job executing",
        extra={"job_id": context.job_id, "attempt": context.attempt}
    )

    return JobResult(
        success=True,
        output={"message": payload.message},
    )


async def execute_job(context: JobContext) -> JobResult:
    """
    Execute a job using the appropriate handler.

    Args:
        context: The job context.

    Returns:
        JobResult from the handler. Handler exceptions become failed results.
    """
    handler = get_handler(context.job_type)

    if handler is None:
        logger.error(
            f"No handler for job type: {context.job_type}",
            extra={"job_id": context.job_id}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for job type: {context.job_type}",
        )

    try:
        return await handler(context)
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"job_id": context.job_id, "error": str(e)}
        )
        return JobResult(
            success=False,
            error=f"Handler exception: {e}",
        )
