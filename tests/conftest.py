"""
Pytest configuration and shared fixtures.
"""

from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import Mock

import pytest
from prometheus_client import CollectorRegistry

from timedqueue.config import Settings
from timedqueue.constants import UNBOUNDED
from timedqueue.observability.metrics import MetricsCollector
from timedqueue.queue import TimedBoundedQueue
from timedqueue.scheduler import ManualExpiryScheduler


@pytest.fixture
def registry() -> CollectorRegistry:
    """Create an isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> MetricsCollector:
    """Create a metrics collector bound to an isolated registry."""
    return MetricsCollector(registry)


@pytest.fixture
def clock() -> ManualExpiryScheduler:
    """Create a scheduler driven by a virtual clock."""
    return ManualExpiryScheduler()


@pytest.fixture
def make_queue(
    clock: ManualExpiryScheduler,
    metrics: MetricsCollector,
) -> Generator[Callable[..., TimedBoundedQueue[Any]]]:
    """Factory for queues on the virtual clock; closes them after the test."""
    created: list[TimedBoundedQueue[Any]] = []

    def factory(
        max_queue_time: int = 1000,
        max_queue_size: int | float = 3,
        **kwargs: Any,
    ) -> TimedBoundedQueue[Any]:
        kwargs.setdefault("scheduler", clock)
        kwargs.setdefault("metrics", metrics)
        queue = TimedBoundedQueue(max_queue_time, max_queue_size, **kwargs)
        created.append(queue)
        return queue

    yield factory

    for queue in created:
        queue.close()


@pytest.fixture
def queue(make_queue: Callable[..., TimedBoundedQueue[Any]]) -> TimedBoundedQueue[Any]:
    """A queue with max_queue_time=1000ms and max_queue_size=3."""
    return make_queue()


@pytest.fixture
def unbounded_queue(make_queue: Callable[..., TimedBoundedQueue[Any]]) -> TimedBoundedQueue[Any]:
    """A queue without a capacity limit."""
    return make_queue(max_queue_size=UNBOUNDED)


@pytest.fixture
def job_factory() -> Callable[[str], Mock]:
    """Create distinct mock jobs."""

    def factory(name: str = "job") -> Mock:
        return Mock(name=name)

    return factory


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        queue_name="test-queue",
        queue_max_time_ms=250,
        queue_max_size=5,
        log_level="DEBUG",
        log_format="console",
    )
