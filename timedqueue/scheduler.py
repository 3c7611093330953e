"""
Expiry schedulers.

A queue owns exactly one scheduler and asks it for one-shot timers, one per
admitted job. Three interchangeable implementations are provided:

- ThreadedExpiryScheduler: a min-heap drained by a single daemon thread
- AsyncioExpiryScheduler: timers on an asyncio event loop
- ManualExpiryScheduler: a virtual clock advanced explicitly (tests, simulations)

All times are milliseconds.
"""

import asyncio
import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from timedqueue.types.job import TimerHandle

logger = logging.getLogger(__name__)

# Compact the heap once it holds this many entries and most are cancelled
_COMPACT_THRESHOLD = 64


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000.0


@runtime_checkable
class ExpiryScheduler(Protocol):
    """Scheduling facility used by a queue for per-job expiry."""

    def now(self) -> float:
        """Current time on the scheduler's clock, in milliseconds."""
        ...

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms`` milliseconds."""
        ...

    def cancel(self, handle: TimerHandle) -> None:
        """Prevent a pending timer from firing. No-op if already done."""
        ...

    def pending(self) -> int:
        """Number of timers that have neither fired nor been cancelled."""
        ...

    def shutdown(self) -> None:
        """Cancel every pending timer and release resources."""
        ...


def _fire(handle: TimerHandle) -> None:
    try:
        handle.callback()
    except Exception:
        logger.exception(
            "Expiry callback failed",
            extra={"deadline": handle.deadline, "seq": handle.seq},
        )


class _HeapScheduler:
    """
    Shared heap bookkeeping.

    Handles are ordered by (deadline, seq). Cancelled handles stay in the heap
    and are discarded when they reach the top, or in bulk by compaction.
    """

    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self._heap: list[TimerHandle] = []
        self._seq = itertools.count()
        self._live = 0
        self._cond = threading.Condition()
        self._stopped = False

    def now(self) -> float:
        return self._clock()

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        with self._cond:
            if self._stopped:
                raise RuntimeError("Scheduler has been shut down")
            handle = TimerHandle(
                deadline=self.now() + delay_ms,
                seq=next(self._seq),
                callback=callback,
            )
            heapq.heappush(self._heap, handle)
            self._live += 1
            self._on_scheduled()
        return handle

    def cancel(self, handle: TimerHandle) -> None:
        with self._cond:
            if not handle.active:
                return
            handle.active = False
            self._live -= 1
            self._maybe_compact()

    def pending(self) -> int:
        with self._cond:
            return self._live

    def shutdown(self) -> None:
        with self._cond:
            self._stopped = True
            for handle in self._heap:
                handle.active = False
            self._heap.clear()
            self._live = 0
            self._cond.notify_all()

    def _on_scheduled(self) -> None:
        """Hook invoked under the lock after a handle is pushed."""

    def _pop_next_due(self, limit: float) -> TimerHandle | None:
        # Caller holds the lock
        while self._heap and self._heap[0].deadline <= limit:
            handle = heapq.heappop(self._heap)
            if handle.active:
                handle.active = False
                self._live -= 1
                return handle
        return None

    def _next_deadline(self) -> float | None:
        # Caller holds the lock
        while self._heap and not self._heap[0].active:
            heapq.heappop(self._heap)
        return self._heap[0].deadline if self._heap else None

    def _maybe_compact(self) -> None:
        if len(self._heap) >= _COMPACT_THRESHOLD and self._live < len(self._heap) // 2:
            self._heap = [h for h in self._heap if h.active]
            heapq.heapify(self._heap)


class ThreadedExpiryScheduler(_HeapScheduler):
    """
    Heap of timers drained by one background daemon thread.

    The thread is started on the first ``schedule`` call and sleeps on a
    condition variable until the earliest deadline or until a new, earlier
    timer is scheduled. Callbacks run on the scheduler thread, outside the
    scheduler lock.
    """

    def __init__(
        self,
        clock: Callable[[], float] = monotonic_ms,
        name: str = "timedqueue-expiry",
    ):
        """
        Initialize the scheduler.

        Args:
            clock: Millisecond clock. Must be monotonic.
            name: Name of the background thread.
        """
        super().__init__(clock)
        self.name = name
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _on_scheduled(self) -> None:
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._run_loop,
                name=self.name,
                daemon=True,
            )
            self._thread.start()
            logger.debug("Expiry scheduler thread started", extra={"thread": self.name})
        self._cond.notify()

    def _run_loop(self) -> None:
        while True:
            with self._cond:
                while True:
                    if self._stopped:
                        return
                    handle = self._pop_next_due(self.now())
                    if handle is not None:
                        break
                    deadline = self._next_deadline()
                    timeout = None
                    if deadline is not None:
                        # Condition.wait overflows beyond TIMEOUT_MAX
                        timeout = min(threading.TIMEOUT_MAX, max(0.0, (deadline - self.now()) / 1000.0))
                    self._cond.wait(timeout)
            _fire(handle)

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """
        Cancel pending timers and stop the background thread.

        Args:
            timeout: Seconds to wait for the thread to exit.
        """
        super().shutdown()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug("Expiry scheduler stopped", extra={"thread": self.name})


class ManualExpiryScheduler(_HeapScheduler):
    """
    Scheduler driven by a virtual clock.

    Nothing fires until ``advance`` is called. Timers due within the advanced
    window fire in deadline order on the calling thread, with the clock set to
    each timer's deadline while its callback runs.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        super().__init__(lambda: self._now)

    def advance(self, ms: float) -> int:
        """
        Move the clock forward, firing every timer that becomes due.

        Args:
            ms: Milliseconds to advance. Must not be negative.

        Returns:
            Number of timers fired.
        """
        if ms < 0:
            raise ValueError("Cannot advance the clock backwards")
        target = self._now + ms
        fired = 0
        while True:
            with self._cond:
                handle = self._pop_next_due(target)
                if handle is None:
                    break
                self._now = max(self._now, handle.deadline)
            _fire(handle)
            fired += 1
        self._now = target
        return fired

    def next_deadline(self) -> float | None:
        """Deadline of the earliest pending timer, if any."""
        with self._cond:
            return self._next_deadline()


class AsyncioExpiryScheduler:
    """
    Scheduler backed by ``loop.call_later``.

    Must be used from the event loop's thread: callbacks run on the loop, so
    queue operations and expiry are serialized by the loop itself.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        """
        Initialize the scheduler.

        Args:
            loop: Event loop to schedule on. Defaults to the running loop.
        """
        self._loop = loop or asyncio.get_running_loop()
        self._seq = itertools.count()
        self._pending: dict[int, TimerHandle] = {}
        self._stopped = False

    def now(self) -> float:
        return self._loop.time() * 1000.0

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        if self._stopped:
            raise RuntimeError("Scheduler has been shut down")
        if self._loop.is_closed():
            raise RuntimeError("Event loop is closed")
        handle = TimerHandle(
            deadline=self.now() + delay_ms,
            seq=next(self._seq),
            callback=callback,
        )
        handle.native = self._loop.call_later(delay_ms / 1000.0, self._run, handle)
        self._pending[handle.seq] = handle
        return handle

    def _run(self, handle: TimerHandle) -> None:
        if not handle.active:
            return
        handle.active = False
        self._pending.pop(handle.seq, None)
        _fire(handle)

    def cancel(self, handle: TimerHandle) -> None:
        if not handle.active:
            return
        handle.active = False
        self._pending.pop(handle.seq, None)
        if handle.native is not None:
            handle.native.cancel()

    def pending(self) -> int:
        return len(self._pending)

    def shutdown(self) -> None:
        self._stopped = True
        for handle in list(self._pending.values()):
            self.cancel(handle)
