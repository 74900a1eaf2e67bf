"""
Request context middleware for the catalog API.

Provides:
- Correlation ids (read from or issued in X-Correlation-ID)
- request_started / request_completed log events
- HTTP request metrics labelled by route template
"""

import time
import uuid
from typing import Optional
import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import correlation_context
from shared.metrics import HTTPMetrics, get_http_metrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def route_template(request: Request) -> str:
    """
    Resolve the matched route path, e.g. ``/api/v1/books/{book_id}``.

    Routers included under a prefix may report a path relative to that
    prefix, with the prefix carried in ``root_path``; it is put back so
    labels look the same on every FastAPI release. Falls back to the raw
    path for unmatched requests (404s).
    """
    route_path = getattr(request.scope.get("route"), "path", None)
    if route_path is None:
        return request.url.path

    app_root = getattr(request.scope.get("app"), "root_path", "") or ""
    prefix = request.scope.get("root_path", "")[len(app_root):]
    if prefix and not route_path.startswith(prefix):
        return prefix + route_path
    return route_path


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to every request and record its outcome."""

    def __init__(self, app, metrics: Optional[HTTPMetrics] = None):
        super().__init__(app)
        self.metrics = metrics or get_http_metrics()

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        method = request.method
        path = request.url.path

        with correlation_context(correlation_id):
            in_progress = self.metrics.requests_in_progress.labels(method=method)
            in_progress.inc()
            started = time.perf_counter()

            logger.info(
                "request_started",
                method=method,
                path=path,
                client_ip=request.client.host if request.client else "unknown"
            )

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    "request_failed",
                    method=method,
                    path=path,
                    error=str(e),
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    exc_info=True
                )
                raise
            finally:
                in_progress.dec()

            duration = time.perf_counter() - started
            endpoint = route_template(request)

            self.metrics.requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=response.status_code
            ).inc()
            self.metrics.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            return response
