"""
Prometheus metrics for monitoring the aggregation engine.

Defines and exposes metrics for:
- Store read latency and failures (rollup, event, dimension stores)
- Query facade request counts and latency
- Degraded (rollup-only) results
- Partial-day events recomputed from raw rows

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the mention-analytics service.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_store_read("rollup", "get_daily_aggregates", 0.04, rows=120)
        metrics.record_query("platform_overview", "success", 0.2)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Store reads
        self.store_read_latency = Histogram(
            "mention_analytics_store_read_latency_seconds",
            "Time spent reading from a backing store",
            ["store", "operation"],  # store: rollup, event, dimension, citation
            buckets=LATENCY_BUCKETS,
        )

        self.store_rows_read = Counter(
            "mention_analytics_store_rows_read_total",
            "Rows returned by store reads",
            ["store"],
        )

        self.store_errors = Counter(
            "mention_analytics_store_errors_total",
            "Store reads that failed or timed out",
            ["store", "error_type"],
        )

        # Query facade
        self.queries = Counter(
            "mention_analytics_queries_total",
            "Facade queries served",
            ["operation", "status"],  # status: success, degraded, error
        )

        self.query_latency = Histogram(
            "mention_analytics_query_latency_seconds",
            "End-to-end facade query latency",
            ["operation"],
            buckets=LATENCY_BUCKETS,
        )

        # Partial-day recompute
        self.partial_events = Counter(
            "mention_analytics_partial_events_total",
            "Raw events recomputed for the partial current day",
            ["kind"],  # mention, citation
        )

        self.partial_degraded = Counter(
            "mention_analytics_partial_degraded_total",
            "Queries that fell back to rollup-only data",
            ["operation"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    def record_store_read(
        self,
        store: str,
        operation: str,
        latency: float,
        rows: int = 0,
    ) -> None:
        """Record a successful store read."""
        self.store_read_latency.labels(store=store, operation=operation).observe(latency)
        if rows:
            self.store_rows_read.labels(store=store).inc(rows)

    def record_store_error(self, store: str, error_type: str) -> None:
        """Record a failed store read."""
        self.store_errors.labels(store=store, error_type=error_type).inc()

    def record_query(self, operation: str, status: str, latency: float) -> None:
        """Record a facade query outcome and latency."""
        self.queries.labels(operation=operation, status=status).inc()
        self.query_latency.labels(operation=operation).observe(latency)

    def record_partial_events(self, mentions: int, citations: int) -> None:
        """Record raw events consumed by the partial-day recompute."""
        if mentions:
            self.partial_events.labels(kind="mention").inc(mentions)
        if citations:
            self.partial_events.labels(kind="citation").inc(citations)

    def record_degraded(self, operation: str) -> None:
        """Record a result served without today's partial slice."""
        self.partial_degraded.labels(operation=operation).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
