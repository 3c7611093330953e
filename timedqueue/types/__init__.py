"""
Type definitions for the queue.
"""

from timedqueue.types.job import (
    Job,
    QueueItem,
    QueueStats,
    TimerHandle,
)

__all__ = [
    "Job",
    "QueueItem",
    "QueueStats",
    "TimerHandle",
]
