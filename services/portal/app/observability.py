from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Gauge,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


REGISTRY = CollectorRegistry()
ProcessCollector(registry=REGISTRY)
PlatformCollector(registry=REGISTRY)
GCCollector(registry=REGISTRY)

_ROUTE_LABELS = ["service", "route", "method"]

REQUEST_SUCCESS_TOTAL = Counter("request_success_total", "Count of successful requests", _ROUTE_LABELS, registry=REGISTRY)
REQUEST_ERROR_TOTAL = Counter(
    "request_error_total", "Count of requests answered with a 5xx status", _ROUTE_LABELS, registry=REGISTRY
)
REQUEST_LATENCY = Histogram(
    "request_latency_ms",
    "Request latency in milliseconds",
    _ROUTE_LABELS,
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000),
    registry=REGISTRY,
)

# Live leads feed
LIVE_CONNECTIONS = Gauge("live_leads_connections", "Open live leads WebSocket connections", registry=REGISTRY)
LIVE_RELOAD_TOTAL = Counter("live_leads_reload_total", "Live leads page reloads", ["trigger"], registry=REGISTRY)
LIVE_FETCH_ERROR_TOTAL = Counter("live_leads_fetch_error_total", "Live leads page fetch failures", registry=REGISTRY)
ROW_CHANGE_TOTAL = Counter(
    "row_change_total", "Row changes published to live subscribers", ["table", "op"], registry=REGISTRY
)


def setup_tracing(app: FastAPI, service_name: str) -> None:
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, excluded_urls="healthz,metrics")


def instrument_sqlalchemy(engine) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def _route_label(request: Request) -> str:
    # Label by route template so ids in paths don't explode label cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def add_metrics_middleware(app: FastAPI, service_name: str) -> None:
    @app.middleware("http")
    async def _metrics(request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        resp = await call_next(request)
        route = _route_label(request)
        method = request.method
        REQUEST_LATENCY.labels(service_name, route, method).observe((time.perf_counter() - start) * 1000)
        if resp.status_code >= 500:
            REQUEST_ERROR_TOTAL.labels(service_name, route, method).inc()
        else:
            REQUEST_SUCCESS_TOTAL.labels(service_name, route, method).inc()
        return resp

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
