"""
Request metrics middleware.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from jobqueue.observability.metrics import get_metrics

# Paths not worth recording
_SKIPPED_PATHS = frozenset({"/metrics", "/docs", "/openapi.json"})


def create_metrics_middleware() -> Callable[..., Awaitable[Response]]:
    """
    Create request metrics middleware for FastAPI.

    Returns:
        The middleware dispatch function.
    """

    async def metrics_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Record count and latency per route template."""
        if request.url.path in _SKIPPED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        get_metrics().record_api_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration_seconds=duration,
        )
        return response

    return metrics_middleware
