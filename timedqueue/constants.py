"""
Queue constants.
Centralized location for all constant values used across the package.
"""

import math
from enum import StrEnum

# Sentinel for an unbounded max_queue_size
UNBOUNDED = math.inf


class QueueEvent(StrEnum):
    """
    Notification channels exposed by a queue.

    - MAX_QUEUE_SIZE: a push was refused because the queue is full
    - MAX_QUEUE_TIME: a job stayed in the queue longer than max_queue_time
    """

    MAX_QUEUE_SIZE = "MaxQueueSize"
    MAX_QUEUE_TIME = "MaxQueueTime"


class ResidencyOutcome(StrEnum):
    """How a job left the queue."""

    PULLED = "pulled"
    EXPIRED = "expired"


# Default values
DEFAULT_QUEUE_NAME = "default"

# Metrics names
METRIC_QUEUE_DEPTH = "timedqueue_depth"
METRIC_JOBS_PUSHED = "timedqueue_jobs_pushed_total"
METRIC_JOBS_REJECTED = "timedqueue_jobs_rejected_total"
METRIC_JOBS_PULLED = "timedqueue_jobs_pulled_total"
METRIC_JOBS_EXPIRED = "timedqueue_jobs_expired_total"
METRIC_JOB_RESIDENCY = "timedqueue_job_residency_seconds"

# Trace span names
SPAN_BATCH = "timedqueue.batch"
SPAN_CLOSE = "timedqueue.close"
