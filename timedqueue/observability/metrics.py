"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from timedqueue.constants import (
    METRIC_JOB_RESIDENCY,
    METRIC_JOBS_EXPIRED,
    METRIC_JOBS_PULLED,
    METRIC_JOBS_PUSHED,
    METRIC_JOBS_REJECTED,
    METRIC_QUEUE_DEPTH,
    ResidencyOutcome,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for timed queues.

    Collects, per queue name:
    - Queue depth
    - Admitted and rejected pushes
    - Pulled and expired jobs
    - Time spent in the queue
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of jobs currently in the queue",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_pushed = Counter(
            METRIC_JOBS_PUSHED,
            "Total number of jobs admitted to the queue",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_rejected = Counter(
            METRIC_JOBS_REJECTED,
            "Total number of pushes refused because the queue was full",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_pulled = Counter(
            METRIC_JOBS_PULLED,
            "Total number of jobs retrieved from the queue",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_expired = Counter(
            METRIC_JOBS_EXPIRED,
            "Total number of jobs evicted after max_queue_time",
            ["queue"],
            registry=self._registry,
        )

        self.job_residency = Histogram(
            METRIC_JOB_RESIDENCY,
            "Time a job spent in the queue in seconds",
            ["queue", "outcome"],
            buckets=(0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
            registry=self._registry,
        )

    def record_pushed(self, queue: str, depth: int) -> None:
        """Record an admitted job."""
        self.jobs_pushed.labels(queue=queue).inc()
        self.queue_depth.labels(queue=queue).set(depth)

    def record_rejected(self, queue: str) -> None:
        """Record a push refused for capacity."""
        self.jobs_rejected.labels(queue=queue).inc()

    def record_pulled(self, queue: str, depth: int, residency_seconds: float) -> None:
        """Record a retrieved job."""
        self.jobs_pulled.labels(queue=queue).inc()
        self.job_residency.labels(queue=queue, outcome=ResidencyOutcome.PULLED).observe(residency_seconds)
        self.queue_depth.labels(queue=queue).set(depth)

    def record_expired(self, queue: str, depth: int, residency_seconds: float) -> None:
        """Record a job evicted by its residency timer."""
        self.jobs_expired.labels(queue=queue).inc()
        self.job_residency.labels(queue=queue, outcome=ResidencyOutcome.EXPIRED).observe(residency_seconds)
        self.queue_depth.labels(queue=queue).set(depth)

    def update_queue_depth(self, queue: str, depth: int) -> None:
        """Update queue depth for a queue."""
        self.queue_depth.labels(queue=queue).set(depth)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics(registry: CollectorRegistry | None = None) -> MetricsCollector:
    """
    Set up and return the process-wide metrics collector.

    Args:
        registry: Registry for the collector, used only on first setup.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector(registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the process-wide metrics collector, creating it if needed.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics

