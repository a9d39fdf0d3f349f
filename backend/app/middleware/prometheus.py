"""Per-request Prometheus metrics."""

from __future__ import annotations

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

_UNTRACKED = frozenset({"/metrics"})


def endpoint_label(path: str) -> str:
    """Replace id segments so every assignment shares one label.

    /api/v1/assignments/<uuid>/submit -> /api/v1/assignments/{id}/submit
    """
    segments = []
    for segment in path.rstrip("/").split("/"):
        try:
            uuid.UUID(segment)
        except ValueError:
            segments.append(segment)
        else:
            segments.append("{id}")
    return "/".join(segments) or "/"


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _UNTRACKED:
            return await call_next(request)

        method = request.method
        endpoint = endpoint_label(request.url.path)
        status = "500"
        http_requests_in_progress.labels(method=method).inc()
        started = time.perf_counter()
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )
            http_requests_in_progress.labels(method=method).dec()
