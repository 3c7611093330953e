"""
Timed Bounded Queue

An in-memory FIFO job queue with two protective limits: a maximum residency
time per job and a maximum queue capacity. Jobs that outstay their welcome and
pushes that do not fit are reported through subscribable notification channels.
"""

__version__ = "1.0.0"

from timedqueue.constants import UNBOUNDED, QueueEvent
from timedqueue.errors import (
    ConfigError,
    InvalidHandlerError,
    InvalidJobError,
    MQError,
    QueueClosedError,
)
from timedqueue.notifications import NotificationChannel
from timedqueue.queue import TimedBoundedQueue
from timedqueue.scheduler import (
    AsyncioExpiryScheduler,
    ExpiryScheduler,
    ManualExpiryScheduler,
    ThreadedExpiryScheduler,
)
from timedqueue.types import Job, QueueItem, QueueStats, TimerHandle

__all__ = [
    "UNBOUNDED",
    "QueueEvent",
    # Core
    "TimedBoundedQueue",
    "NotificationChannel",
    # Schedulers
    "ExpiryScheduler",
    "ThreadedExpiryScheduler",
    "AsyncioExpiryScheduler",
    "ManualExpiryScheduler",
    # Types
    "Job",
    "QueueItem",
    "QueueStats",
    "TimerHandle",
    # Errors
    "MQError",
    "ConfigError",
    "InvalidJobError",
    "InvalidHandlerError",
    "QueueClosedError",
]
