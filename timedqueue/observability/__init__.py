"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from timedqueue.observability.logging import setup_logging
from timedqueue.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from timedqueue.observability.tracing import create_span, get_tracer, setup_tracing

__all__ = [
    "setup_logging",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "create_span",
]
