"""ASGI middleware that records Prometheus metrics for every HTTP request."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ssms.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

_SKIP_PATHS = frozenset({"/api/health", "/metrics"})

# Literal segments that may follow /invites/; anything else there is a token
_INVITE_ROUTES = frozenset({"link"})


def _is_uuid(segment: str) -> bool:
    stripped = segment.replace("-", "")
    return len(stripped) == 32 and all(c in "0123456789abcdef" for c in stripped.lower())


def _normalise_path(path: str) -> str:
    """Collapse ids and invite tokens so label cardinality stays bounded.

    /api/v1/users/550e8400-e29b-41d4-a716-446655440000  ->  /api/v1/users/{id}
    /api/v1/invites/Zx8...                              ->  /api/v1/invites/{token}
    """
    parts = path.rstrip("/").split("/")
    out: list[str] = []
    for i, part in enumerate(parts):
        if _is_uuid(part):
            out.append("{id}")
        elif i > 0 and parts[i - 1] == "invites" and part and part not in _INVITE_ROUTES:
            # Never put credentials into metric labels
            out.append("{token}")
        else:
            out.append(part)
    return "/".join(out) or "/"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Records request count, duration, and in-progress gauge."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        method = request.method

        if path in _SKIP_PATHS:
            return await call_next(request)

        endpoint = _normalise_path(path)

        http_requests_in_progress.labels(method=method).inc()
        start = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
        finally:
            elapsed = time.perf_counter() - start
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(elapsed)
            http_requests_in_progress.labels(method=method).dec()

        return response
