"""
Prometheus metrics and instrumentation helpers.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


HTTP_REQUESTS_TOTAL = Counter(
    "assistlink_http_requests_total",
    "Total count of HTTP requests processed.",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "assistlink_http_request_duration_seconds",
    "Histogram of HTTP request durations in seconds.",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

HTTP_REQUEST_ERRORS = Counter(
    "assistlink_http_request_errors_total",
    "Count of HTTP requests resulting in error responses.",
    ["method", "path", "status"],
)

CACHE_OPERATIONS = Counter(
    "assistlink_cache_operations_total",
    "Cache operations partitioned by outcome.",
    ["operation"],
)

EXTERNAL_API_RETRIES = Counter(
    "assistlink_external_api_retries_total",
    "Retries issued when calling external APIs.",
    ["service"],
)

CLASSIFICATIONS_TOTAL = Counter(
    "assistlink_classifications_total",
    "Utterance classifications partitioned by producing tier and category.",
    ["source", "category"],
)

COMMIT_ATTEMPTS = Counter(
    "assistlink_commit_attempts_total",
    "Volunteer commit and assignment attempts partitioned by outcome.",
    ["kind", "outcome"],
)

STATUS_TRANSITIONS = Counter(
    "assistlink_status_transitions_total",
    "Applied request status transitions.",
    ["kind", "from_status", "to_status"],
)


def _normalise_path(request: Request) -> str:
    """
    Prefer route path templates to reduce cardinality in metrics.

    Routes of an included router may report their template without the
    router prefix (``/{request_id}``). The prefix is then taken from the
    concrete path, which has one segment per template segment.
    """
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if template is None:
        return request.url.path

    template_segments = [part for part in template.split("/") if part]
    path_segments = request.scope.get("path", "").rstrip("/").split("/")
    prefix_length = max(len(path_segments) - len(template_segments), 0)
    prefix = "/".join(path_segments[:prefix_length])
    if template and not template.startswith("/"):
        template = "/" + template
    return f"{prefix}{template}" or "/"


def observe_http_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record metrics for an HTTP request."""
    status_str = str(status_code)
    HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status_str).inc()
    HTTP_REQUEST_DURATION.labels(method=method, path=path).observe(duration)

    if status_code >= 400:
        HTTP_REQUEST_ERRORS.labels(method=method, path=path, status=status_str).inc()


def record_cache_operation(operation: str) -> None:
    """Increment cache operation counters."""
    CACHE_OPERATIONS.labels(operation=operation).inc()


def record_external_api_retry(service: str) -> None:
    """Increment retry counter for an external service."""
    EXTERNAL_API_RETRIES.labels(service=service).inc()


def record_classification(source: str, category: str) -> None:
    """Count a classification by the tier that produced it."""
    CLASSIFICATIONS_TOTAL.labels(source=source, category=category).inc()


def record_commit_attempt(kind: str, outcome: str) -> None:
    """Count a commit attempt (won, already_committed, rejected)."""
    COMMIT_ATTEMPTS.labels(kind=kind, outcome=outcome).inc()


def record_status_transition(kind: str, from_status: str, to_status: str) -> None:
    STATUS_TRANSITIONS.labels(kind=kind, from_status=from_status, to_status=to_status).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for capturing request metrics."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        method = request.method
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            observe_http_request(method, _normalise_path(request), 500, duration)
            raise

        duration = time.perf_counter() - start
        # The route is only resolved once the router has run.
        observe_http_request(method, _normalise_path(request), response.status_code, duration)
        return response


__all__ = [
    "MetricsMiddleware",
    "HTTP_REQUESTS_TOTAL",
    "HTTP_REQUEST_DURATION",
    "HTTP_REQUEST_ERRORS",
    "CACHE_OPERATIONS",
    "EXTERNAL_API_RETRIES",
    "CLASSIFICATIONS_TOTAL",
    "COMMIT_ATTEMPTS",
    "STATUS_TRANSITIONS",
    "observe_http_request",
    "record_cache_operation",
    "record_external_api_retry",
    "record_classification",
    "record_commit_attempt",
    "record_status_transition",
]
