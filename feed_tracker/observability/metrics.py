"""
Prometheus metrics for the polling pipeline.

Tracks cycle throughput, per-source fetch outcomes, stored snapshots,
new items and errors by kind. Exposed over HTTP for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from feed_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
CYCLE_BUCKETS = (0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0)


class MetricsCollector:
    """
    Prometheus metrics collector for feed-tracker.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_fetch(latency=0.4, status="success")
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.cycles = Counter(
            "feed_tracker_cycles_total",
            "Polling cycles completed",
            ["status"],  # status: clean, partial, aborted
            registry=registry,
        )

        self.feeds_fetched = Counter(
            "feed_tracker_feeds_fetched_total",
            "Feed documents fetched",
            ["status"],  # status: success, error
            registry=registry,
        )

        self.snapshots_stored = Counter(
            "feed_tracker_snapshots_stored_total",
            "Feed snapshots persisted",
            registry=registry,
        )

        self.new_items = Counter(
            "feed_tracker_new_items_total",
            "New feed items handed to the item sink",
            registry=registry,
        )

        self.errors = Counter(
            "feed_tracker_errors_total",
            "Per-source errors collected by the scheduler",
            ["kind"],
            registry=registry,
        )

        self.fetch_latency = Histogram(
            "feed_tracker_fetch_latency_seconds",
            "Feed fetch and parse latency",
            buckets=LATENCY_BUCKETS,
            registry=registry,
        )

        self.cycle_duration = Histogram(
            "feed_tracker_cycle_duration_seconds",
            "Wall time of one polling cycle",
            buckets=CYCLE_BUCKETS,
            registry=registry,
        )

        self.sources_configured = Gauge(
            "feed_tracker_sources_configured",
            "Source feeds loaded at the start of the last cycle",
            registry=registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """Start Prometheus metrics HTTP server (port defaults to settings)."""
        port = port or get_settings().metrics_port
        start_http_server(port, registry=self.registry)
        logger.info(f"Prometheus metrics server started on port {port}")

    def record_fetch(self, latency: float, status: str = "success") -> None:
        self.feeds_fetched.labels(status=status).inc()
        self.fetch_latency.observe(latency)

    def record_error(self, kind: str) -> None:
        self.errors.labels(kind=kind).inc()

    def record_cycle(self, duration: float, status: str) -> None:
        """
        Record a finished cycle.

        Args:
            duration: Cycle wall time in seconds
            status: clean (no errors), partial (some sources failed) or
                aborted (sources could not be loaded)
        """
        self.cycles.labels(status=status).inc()
        self.cycle_duration.observe(duration)


_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
