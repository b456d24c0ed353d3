"""
Prometheus request metrics for the HTTP service.
"""

from typing import Optional, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

LABELS = ("code", "method", "handler")


class RequestMetrics:
    """
    Per-route request counter and latency histogram.

    Each instance owns its registry, so several applications can live in one
    process without clashing collector names.
    """

    def __init__(self, subsystem: str = "http", registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "requests_total",
            "How many HTTP requests processed, partitioned by status code, method and handler.",
            LABELS,
            subsystem=subsystem,
            registry=self.registry,
        )
        self.duration = Histogram(
            "request_duration_seconds",
            "Time until the response started, in seconds.",
            LABELS,
            subsystem=subsystem,
            registry=self.registry,
        )

    def observe(self, method: str, handler: str, status_code: int, seconds: float) -> None:
        labels = (str(status_code), method, handler)
        self.requests.labels(*labels).inc()
        self.duration.labels(*labels).observe(seconds)

    def render(self) -> Tuple[bytes, str]:
        """Exposition text and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
