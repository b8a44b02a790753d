"""FastAPI middleware for request tracing and metrics"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from consumer_finance.infrastructure.observability.metrics import request_duration_histogram


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate or assign a request ID for distributed tracing"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        # Route template, not the raw path, to keep label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        duration = time.time() - start_time
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(duration)

        return response
