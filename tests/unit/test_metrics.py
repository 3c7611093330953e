"""
Unit tests for queue metrics.
"""

from prometheus_client import CollectorRegistry

from timedqueue.observability.metrics import MetricsCollector


def sample(registry: CollectorRegistry, name: str, **labels: str) -> float | None:
    """Read a single sample value from a registry."""
    return registry.get_sample_value(name, labels)


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_push_and_reject(self, queue, registry):
        """Test admitted and rejected pushes are counted separately."""
        for _ in range(5):
            queue.push(lambda: None)

        assert sample(registry, "timedqueue_jobs_pushed_total", queue="default") == 3
        assert sample(registry, "timedqueue_jobs_rejected_total", queue="default") == 2
        assert sample(registry, "timedqueue_depth", queue="default") == 3

    def test_pull_and_expire(self, queue, clock, registry):
        """Test pulls and expiries update counters, depth and residency."""
        queue.push(lambda: None)
        queue.push(lambda: None)
        clock.advance(250)
        queue.pull()
        clock.advance(750)

        assert sample(registry, "timedqueue_jobs_pulled_total", queue="default") == 1
        assert sample(registry, "timedqueue_jobs_expired_total", queue="default") == 1
        assert sample(registry, "timedqueue_depth", queue="default") == 0
        assert sample(
            registry,
            "timedqueue_job_residency_seconds_sum",
            queue="default",
            outcome="pulled",
        ) == 0.25
        assert sample(
            registry,
            "timedqueue_job_residency_seconds_sum",
            queue="default",
            outcome="expired",
        ) == 1.0

    def test_queues_labelled_by_name(self, make_queue, registry):
        """Test each queue reports under its own label."""
        make_queue(name="emails").push(lambda: None)
        make_queue(name="sms")

        assert sample(registry, "timedqueue_depth", queue="emails") == 1
        assert sample(registry, "timedqueue_depth", queue="sms") == 0

    def test_exposition(self, metrics: MetricsCollector, queue):
        """Test metrics render in Prometheus text format."""
        queue.push(lambda: None)

        output = metrics.get_metrics().decode()

        assert "timedqueue_jobs_pushed_total" in output
        assert metrics.get_content_type().startswith("text/plain")
