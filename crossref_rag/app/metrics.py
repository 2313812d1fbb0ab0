from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from crossref_rag.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
QUERY_OUTCOMES = Counter(
    "rag_query_outcomes_total",
    "Multi-store query outcomes by refusal reason",
    ["outcome"],
)
SOURCES_BY_TYPE = Counter(
    "rag_sources_total",
    "Sources returned per collection type",
    ["collection"],
)


def record_query(refusal_reason: str | None, breakdown: dict[str, int]) -> None:
    if not settings.metrics_enabled:
        return
    QUERY_OUTCOMES.labels(refusal_reason or "answered").inc()
    for collection, count in breakdown.items():
        SOURCES_BY_TYPE.labels(collection).inc(count)


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        REQUEST_COUNT.labels(request.method, path, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
