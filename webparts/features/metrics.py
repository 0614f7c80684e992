"""
Prometheus metrics for the server and a part exposing them.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, REGISTRY, generate_latest
)

from ..core.combinators import Handler, WebPart
from ..core.context import BufferBody, HttpContext


class ServerMetrics:
    """Request counters, in-flight gauge and latency histogram.

    Args:
        registry: Collector registry to register on (default: the global one)
        namespace: Metric name prefix
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY, namespace: str = "webparts"):
        self.registry = registry
        self.requests_total = Counter(
            "requests_total", "Total HTTP requests", namespace=namespace, registry=registry
        )
        self.request_errors = Counter(
            "request_errors_total", "Total HTTP request errors", namespace=namespace, registry=registry
        )
        self.in_flight = Gauge(
            "in_flight_requests", "In-flight requests", namespace=namespace, registry=registry
        )
        self.latency = Histogram(
            "request_duration_seconds", "Request duration seconds", namespace=namespace, registry=registry
        )


_default_metrics: Optional[ServerMetrics] = None


def default_metrics() -> ServerMetrics:
    """Metrics registered once on the global registry."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = ServerMetrics()
    return _default_metrics


def metrics_endpoint(registry: CollectorRegistry = REGISTRY) -> WebPart:
    """Respond with the Prometheus text exposition of ``registry``.

    Mount it behind a route, e.g. ``path("/metrics") >> metrics_endpoint()``.
    """

    async def exposition(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        headers = ctx.headers.replace("Content-Type", CONTENT_TYPE_LATEST)
        return await next(ctx.replace(headers=headers, body=BufferBody(generate_latest(registry))))

    return WebPart(exposition, name="metrics_endpoint")
