from __future__ import annotations

from contextlib import suppress

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)


HTTP_BUCKETS = (0.1, 0.5, 1.0, 2.0, 5.0)
# DB queries should stay sub-second; HTTP also pays for network and queuing.
DB_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0)

DB_OPERATIONS = ("select", "insert", "update", "delete")


class MetricsRegistry:
    """Process-local Prometheus metrics (reset on restart).

    Owns its own CollectorRegistry instead of the prometheus_client global one, so
    every app instance (and every test) gets an isolated set of series.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, process_prefix: str = "taskhub") -> None:
        self.registry = CollectorRegistry()
        self._closed = False

        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "route", "status_code"],
            buckets=HTTP_BUCKETS,
            registry=self.registry,
        )
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests by method, route and status code",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.db_query_duration_seconds = Histogram(
            "db_query_duration_seconds",
            "Database query duration in seconds",
            ["operation"],
            buckets=DB_BUCKETS,
            registry=self.registry,
        )
        # Export every operation from the first scrape, even before it is used.
        for operation in DB_OPERATIONS:
            self.db_query_duration_seconds.labels(operation=operation)
        self.tasks_total = Gauge(
            "tasks_total",
            "Number of tasks in storage",
            registry=self.registry,
        )
        self.tasks_completed = Gauge(
            "tasks_completed",
            "Number of completed tasks in storage",
            registry=self.registry,
        )

        self._collectors = [
            self.http_request_duration_seconds,
            self.http_requests_total,
            self.db_query_duration_seconds,
            self.tasks_total,
            self.tasks_completed,
            # Resampled on every scrape; namespaced away from application metric names.
            ProcessCollector(namespace=process_prefix, registry=self.registry),
            PlatformCollector(registry=self.registry),
            GCCollector(registry=self.registry),
        ]

    def observe_http_request(self, method: str, route: str, status_code: int, elapsed_s: float) -> None:
        labels = {"method": method, "route": route, "status_code": str(status_code)}
        self.http_request_duration_seconds.labels(**labels).observe(elapsed_s)
        self.http_requests_total.labels(**labels).inc()

    def observe_db_query(self, operation: str, elapsed_s: float) -> None:
        self.db_query_duration_seconds.labels(operation=operation).observe(elapsed_s)

    def set_task_gauges(self, total: int, completed: int) -> None:
        self.tasks_total.set(total)
        self.tasks_completed.set(completed)

    def render(self) -> bytes:
        return generate_latest(self.registry)

    def close(self) -> None:
        """Unregister every collector; safe to call more than once."""

        if self._closed:
            return
        for collector in self._collectors:
            # GCCollector does not register itself outside CPython.
            with suppress(KeyError):
                self.registry.unregister(collector)
        self._collectors = []
        self._closed = True
