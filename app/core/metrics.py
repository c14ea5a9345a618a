"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "AI scaffold application info")
APP_INFO.info({"version": "1.0.0", "name": "ai_scaffold"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

PROVIDER_REQUESTS = Counter(
    "ai_provider_requests_total",
    "Upstream AI provider calls",
    ["provider", "operation", "status"],
)

PROVIDER_RETRIES = Counter(
    "ai_provider_retries_total",
    "Retried upstream AI provider attempts",
    ["provider"],
)


# --- Middleware ---

# Template paths are user-chosen; collapse them to keep label cardinality low
_PATH_PREFIXES = ("/api/v1/prompts/",)


def _normalize_path(path: str) -> str:
    """Replace template paths with {path} to avoid high cardinality."""
    for prefix in _PATH_PREFIXES:
        if path.startswith(prefix) and len(path) > len(prefix):
            return f"{prefix}{{path}}"
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
