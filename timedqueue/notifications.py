"""
Notification channels for queue events.

A channel is an ordered list of subscribers. Notifying a channel broadcasts
the job to every subscriber in subscription order; return values are ignored.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from timedqueue.errors import InvalidHandlerError

logger = logging.getLogger(__name__)

# Type alias for subscriber functions
Handler = Callable[[Any], Any]


class NotificationChannel:
    """
    Observer registry for a single queue event.

    Subscribers are invoked synchronously on whichever thread calls
    ``notify``. A subscriber that raises is logged and skipped so the
    remaining subscribers still receive the job.
    """

    def __init__(self, name: str):
        """
        Initialize the channel.

        Args:
            name: Channel name, used in log records.
        """
        self.name = name
        self._handlers: list[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> Handler:
        """
        Register a subscriber.

        Args:
            handler: Callable receiving the job.

        Returns:
            The handler, so this can be used as a decorator.

        Raises:
            InvalidHandlerError: If the handler is not callable.

        Example:
            @queue.age_exceeded.subscribe
            def on_expired(job):
                ...
        """
        if not callable(handler):
            raise InvalidHandlerError(
                f"The '{self.name}' handler must be callable"
            )
        with self._lock:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> bool:
        """
        Remove the first registration of a subscriber.

        Returns:
            True if the handler was registered.
        """
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
        return True

    def clear(self) -> None:
        """Remove every subscriber."""
        with self._lock:
            self._handlers.clear()

    @property
    def subscribers(self) -> tuple[Handler, ...]:
        """Snapshot of the current subscribers."""
        with self._lock:
            return tuple(self._handlers)

    def notify(self, job: Any) -> int:
        """
        Broadcast a job to every subscriber.

        Args:
            job: The job being reported.

        Returns:
            Number of subscribers that completed without raising.
        """
        delivered = 0
        for handler in self.subscribers:
            try:
                handler(job)
                delivered += 1
            except Exception:
                logger.exception(
                    "Notification subscriber failed",
                    extra={"channel": self.name},
                )
        return delivered

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"NotificationChannel({self.name!r}, subscribers={len(self)})"
