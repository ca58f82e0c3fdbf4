"""Request timing middleware for API performance tracking."""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from shared.metrics import MetricsSink, NullMetricsSink

logger = structlog.get_logger()


class TimingMiddleware(BaseHTTPMiddleware):
    """Adds X-Response-Time-Ms header and reports per-path latency to a metrics sink."""

    def __init__(self, app: ASGIApp, sink: MetricsSink | None = None):
        super().__init__(app)
        self.sink = sink or NullMetricsSink()

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        path = request.url.path
        self.sink.observe("http.request", duration, path=path)
        self.sink.increment("http.responses", status=str(response.status_code))

        response.headers["X-Response-Time-Ms"] = str(round(duration * 1000, 2))

        logger.debug(
            "request_completed",
            path=path,
            method=request.method,
            status=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        return response
