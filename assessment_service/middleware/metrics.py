"""Prometheus metrics middleware, instruments every HTTP request.

For each request, this middleware:
  1. Increments the ACTIVE_REQUESTS gauge (decremented on completion)
  2. Times the request
  3. On completion, increments REQUEST_COUNT (by method/endpoint/status)
     and observes the duration in the REQUEST_DURATION histogram

ENDPOINT LABEL
--------------
The label is the matched route template, for example

  /v1/assignments/{assignment_id}/answers/{question_id}

and not the raw path. Every learner answering every question would
otherwise mint a new time series per URL. Starlette only resolves the
route while the request is being handled, so the template is read from
``request.scope["route"]`` after ``call_next`` returns. Requests that
match no route (404s from scanners, typos) share the ``unmatched``
label.

/metrics itself is not instrumented; scrapes would dominate the request
count on an idle service.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from assessment_service.core.metrics import (
    ACTIVE_REQUESTS,
    REQUEST_COUNT,
    REQUEST_DURATION,
)


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if path else "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect Prometheus metrics for every HTTP request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Prometheus scrapes would otherwise inflate the request count.
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code: str | None = None

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.monotonic() - start
            ACTIVE_REQUESTS.dec()
            endpoint = _endpoint_label(request)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code if status_code is not None else "500",
            ).inc()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration)

        return response
