"""
Job-related type definitions for internal use.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

# A job is any callable; the queue holds it but never calls it.
Job = Callable[..., T]


@dataclass(order=True)
class TimerHandle:
    """
    A pending one-shot expiry operation.
    Ordered by deadline, ties broken by scheduling order.
    """

    deadline: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    active: bool = field(default=True, compare=False)
    # Backend-specific handle (e.g. asyncio.TimerHandle)
    native: Any = field(default=None, compare=False, repr=False)


@dataclass
class QueueItem(Generic[T]):
    """
    A job admitted to the queue.
    Owned by the queue together with its expiry timer.
    """

    item_id: int
    timer: TimerHandle
    job: Job[T]
    enqueued_at: float

    def residency_ms(self, now: float) -> float:
        """Milliseconds spent in the queue as of ``now``."""
        return max(0.0, now - self.enqueued_at)


class QueueStats(BaseModel):
    """
    Point-in-time snapshot of a queue.
    Used for observability and reporting.
    """

    name: str
    size: int
    max_queue_time: int
    max_queue_size: int | float
    pushed: int = 0
    rejected: int = 0
    pulled: int = 0
    expired: int = 0
    closed: bool = False

    @property
    def is_unbounded(self) -> bool:
        """Check if the queue has no capacity limit."""
        return math.isinf(self.max_queue_size)

    @property
    def is_full(self) -> bool:
        """Check if the next push would be refused."""
        return not self.is_unbounded and self.size >= self.max_queue_size
