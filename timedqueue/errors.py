"""
Exception hierarchy for the queue.
"""


class MQError(Exception):
    """Base class for every error raised by the queue."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(MQError):
    """Raised when a queue is constructed with invalid limits."""


class InvalidJobError(MQError, TypeError):
    """Raised when a non-callable is pushed."""


class InvalidHandlerError(MQError, TypeError):
    """Raised when a non-callable is subscribed to a notification channel."""


class QueueClosedError(MQError):
    """Raised when pushing to a queue that has been closed."""
