"""
Timed bounded FIFO queue.

Jobs are held in push order. Each admitted job gets a one-shot expiry timer
due ``max_queue_time`` milliseconds later; when it fires before the job is
pulled, the job is evicted and broadcast on the ``age_exceeded`` channel.
Pushes that would exceed ``max_queue_size`` are not admitted and are
broadcast on the ``capacity_exceeded`` channel instead.
"""

import itertools
import logging
import math
import numbers
import threading
from collections import OrderedDict
from functools import partial
from typing import Any, Generic, TypeVar

from timedqueue.config import Settings, get_settings
from timedqueue.constants import (
    DEFAULT_QUEUE_NAME,
    SPAN_BATCH,
    SPAN_CLOSE,
    UNBOUNDED,
    QueueEvent,
)
from timedqueue.errors import ConfigError, InvalidJobError, QueueClosedError
from timedqueue.notifications import Handler, NotificationChannel
from timedqueue.observability.metrics import MetricsCollector, get_metrics
from timedqueue.observability.tracing import create_span
from timedqueue.scheduler import ExpiryScheduler, ThreadedExpiryScheduler
from timedqueue.types.job import Job, QueueItem, QueueStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool) and value > 0


def _is_unbounded(value: Any) -> bool:
    return isinstance(value, float) and math.isinf(value) and value > 0


class TimedBoundedQueue(Generic[T]):
    """
    In-memory FIFO job queue with residency expiry and a capacity limit.

    The queue never calls the jobs it holds. All mutations of the internal
    sequence, whether from callers or from expiry timers, are serialized by a
    single re-entrant lock. Notifications are delivered after the lock is
    released, so subscribers may safely call back into the queue.

    Example:
        queue = TimedBoundedQueue(max_queue_time=5000, max_queue_size=100)
        queue.on_age_exceeded(lambda job: log.warning("stale", job=job))
        queue.push(send_email)
        job = queue.pull()
    """

    def __init__(
        self,
        max_queue_time: int,
        max_queue_size: int | float,
        *,
        name: str = DEFAULT_QUEUE_NAME,
        scheduler: ExpiryScheduler | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Create a queue.

        Args:
            max_queue_time: Milliseconds a job may stay queued. Integer > 0.
            max_queue_size: Maximum number of queued jobs. Integer > 0 or UNBOUNDED.
            name: Queue name used in logs and metric labels.
            scheduler: Expiry scheduler. When omitted the queue creates its own
                ThreadedExpiryScheduler and shuts it down on close().
            metrics: Metrics collector. Defaults to the process-wide collector.

        Raises:
            ConfigError: If either limit is invalid.
        """
        if not _is_positive_int(max_queue_time):
            raise ConfigError("The 'max_queue_time' must be an integer greater than 0")

        if not (_is_positive_int(max_queue_size) or _is_unbounded(max_queue_size)):
            raise ConfigError(
                "The 'max_queue_size' must be an integer greater than 0 or UNBOUNDED"
            )

        self.name = name
        self._max_queue_time = int(max_queue_time)
        self._max_queue_size = max_queue_size if _is_unbounded(max_queue_size) else int(max_queue_size)

        self._owns_scheduler = scheduler is None
        self._scheduler: ExpiryScheduler = scheduler or ThreadedExpiryScheduler(
            name=f"timedqueue-{name}"
        )
        self._metrics = metrics or get_metrics()

        self._items: OrderedDict[int, QueueItem[T]] = OrderedDict()
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._closed = False

        # Lifetime counters for stats()
        self._pushed = 0
        self._rejected = 0
        self._pulled = 0
        self._expired = 0

        self.capacity_exceeded = NotificationChannel(QueueEvent.MAX_QUEUE_SIZE)
        self.age_exceeded = NotificationChannel(QueueEvent.MAX_QUEUE_TIME)

        self._metrics.update_queue_depth(self.name, 0)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> "TimedBoundedQueue[Any]":
        """
        Build a queue from configuration.

        Args:
            settings: Settings to use. Defaults to the cached environment settings.
            **kwargs: Passed through to the constructor (scheduler, metrics).
        """
        settings = settings or get_settings()
        max_queue_size = UNBOUNDED if settings.queue_max_size is None else settings.queue_max_size
        kwargs.setdefault("name", settings.queue_name)
        return cls(settings.queue_max_time_ms, max_queue_size, **kwargs)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def channel(self, event: QueueEvent | str) -> NotificationChannel:
        """Get the notification channel for an event name."""
        event = QueueEvent(event)
        if event is QueueEvent.MAX_QUEUE_SIZE:
            return self.capacity_exceeded
        return self.age_exceeded

    def subscribe(self, event: QueueEvent | str, handler: Handler) -> Handler:
        """Subscribe a handler to an event by name."""
        return self.channel(event).subscribe(handler)

    def on_capacity_exceeded(self, handler: Handler) -> Handler:
        """Subscribe to jobs refused because the queue is full."""
        return self.capacity_exceeded.subscribe(handler)

    def on_age_exceeded(self, handler: Handler) -> Handler:
        """Subscribe to jobs evicted after max_queue_time."""
        return self.age_exceeded.subscribe(handler)

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def admission_allowed(self) -> bool:
        """
        Determine if a job can be added without exceeding max_queue_size.

        Returns:
            True if a push would be admitted.
        """
        return self._max_queue_size == UNBOUNDED or len(self._items) < self._max_queue_size

    def push(self, job: Job[T]) -> None:
        """
        Add a job to the back of the queue.

        If the queue is full the job is not admitted; it is broadcast on the
        capacity_exceeded channel before this call returns.

        Args:
            job: The job to enqueue. Must be callable.

        Raises:
            InvalidJobError: If the job is not callable.
            QueueClosedError: If the queue has been closed.
        """
        if not callable(job):
            raise InvalidJobError("The 'job' argument must be callable")

        with self._lock:
            if self._closed:
                raise QueueClosedError(f"Queue '{self.name}' is closed")

            admitted = self.admission_allowed()
            if admitted:
                item_id = next(self._ids)
                enqueued_at = self._scheduler.now()
                timer = self._scheduler.schedule(
                    self._max_queue_time,
                    partial(self._expire, item_id),
                )
                self._items[item_id] = QueueItem(
                    item_id=item_id,
                    timer=timer,
                    job=job,
                    enqueued_at=enqueued_at,
                )
                self._pushed += 1
            else:
                self._rejected += 1
            depth = len(self._items)

        if not admitted:
            logger.warning(
                "Queue full, job rejected",
                extra={"queue": self.name, "max_queue_size": self._max_queue_size},
            )
            self._metrics.record_rejected(self.name)
            self.capacity_exceeded.notify(job)
            return

        self._metrics.record_pushed(self.name, depth)
        logger.debug(
            "Job queued",
            extra={"queue": self.name, "item_id": item_id, "depth": depth},
        )

    def _expire(self, item_id: int) -> None:
        """Timer callback: evict an item that outlived max_queue_time."""
        with self._lock:
            item = self._items.pop(item_id, None)
            if item is None:
                # Already pulled
                return
            self._expired += 1
            depth = len(self._items)
            residency_ms = item.residency_ms(self._scheduler.now())

        self._metrics.record_expired(self.name, depth, residency_ms / 1000.0)
        logger.info(
            "Job exceeded max queue time",
            extra={
                "queue": self.name,
                "item_id": item_id,
                "residency_ms": residency_ms,
                "depth": depth,
            },
        )
        self.age_exceeded.notify(item.job)

    def pull(self) -> Job[T] | None:
        """
        Remove and return the oldest job in FIFO order.

        If jobs are pushed in the order 1, 2, 3, successive pulls return
        1, then 2, then 3. The job's expiry timer is cancelled.

        Returns:
            The oldest job, or None if the queue is empty.
        """
        with self._lock:
            if not self._items:
                return None
            item_id, item = self._items.popitem(last=False)
            self._scheduler.cancel(item.timer)
            self._pulled += 1
            depth = len(self._items)
            residency_ms = item.residency_ms(self._scheduler.now())

        self._metrics.record_pulled(self.name, depth, residency_ms / 1000.0)
        logger.debug(
            "Job pulled",
            extra={"queue": self.name, "item_id": item_id, "depth": depth},
        )
        return item.job

    def batch(self) -> list[Job[T]] | None:
        """
        Remove and return every queued job, oldest first.

        Returns:
            The jobs in FIFO order, or None if the queue was empty.
        """
        with create_span(SPAN_BATCH, queue=self.name) as span:
            jobs: list[Job[T]] = []
            with self._lock:
                while True:
                    job = self.pull()
                    if job is None:
                        break
                    jobs.append(job)
            span.set_attribute("timedqueue.jobs", len(jobs))

        return jobs or None

    def close(self) -> list[Job[T]] | None:
        """
        Drain the queue and stop accepting jobs.

        Every pending expiry timer is cancelled. A scheduler created by the
        queue is shut down; an injected scheduler is left running.

        Returns:
            The drained jobs in FIFO order, or None if there were none or the
            queue was already closed.
        """
        with create_span(SPAN_CLOSE, queue=self.name):
            with self._lock:
                if self._closed:
                    return None
                jobs = self.batch()
                self._closed = True

            if self._owns_scheduler:
                self._scheduler.shutdown()

        logger.info(
            "Queue closed",
            extra={"queue": self.name, "drained": len(jobs) if jobs else 0},
        )
        return jobs

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def max_queue_time(self) -> int:
        return self._max_queue_time

    @property
    def max_queue_size(self) -> int | float:
        return self._max_queue_size

    def get_max_queue_time(self) -> int:
        """Get the maximum time in milliseconds a job can stay in the queue."""
        return self._max_queue_time

    def get_max_queue_size(self) -> int | float:
        """Get the maximum number of jobs the queue holds (UNBOUNDED if unlimited)."""
        return self._max_queue_size

    def size(self) -> int:
        """Get the current number of jobs in the queue."""
        return len(self._items)

    def has_job(self) -> bool:
        """Check if there are any jobs in the queue."""
        return self.size() > 0

    def has_no_job(self) -> bool:
        """Check if the queue is empty."""
        return self.size() == 0

    def stats(self) -> QueueStats:
        """Snapshot of the queue's size, limits and lifetime counters."""
        with self._lock:
            return QueueStats(
                name=self.name,
                size=len(self._items),
                max_queue_time=self._max_queue_time,
                max_queue_size=self._max_queue_size,
                pushed=self._pushed,
                rejected=self._rejected,
                pulled=self._pulled,
                expired=self._expired,
                closed=self._closed,
            )

    def __len__(self) -> int:
        return self.size()

    def __bool__(self) -> bool:
        return self.has_job()

    def __enter__(self) -> "TimedBoundedQueue[T]":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"TimedBoundedQueue(name={self.name!r}, size={self.size()}, "
            f"max_queue_time={self._max_queue_time}, max_queue_size={self._max_queue_size})"
        )
