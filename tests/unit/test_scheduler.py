"""
Unit tests for expiry schedulers.
"""

import logging
from unittest.mock import Mock

import pytest

from timedqueue.scheduler import (
    ExpiryScheduler,
    ManualExpiryScheduler,
    ThreadedExpiryScheduler,
)


class TestManualExpiryScheduler:
    """Tests for the virtual clock scheduler."""

    def test_is_expiry_scheduler(self, clock: ManualExpiryScheduler):
        """Test the scheduler satisfies the protocol."""
        assert isinstance(clock, ExpiryScheduler)

    def test_nothing_fires_without_advance(self, clock: ManualExpiryScheduler):
        """Test timers only fire when the clock moves."""
        callback = Mock()
        clock.schedule(0, callback)

        callback.assert_not_called()
        assert clock.pending() == 1

    def test_fires_at_deadline(self, clock: ManualExpiryScheduler):
        """Test a timer fires once its deadline is reached."""
        callback = Mock()
        handle = clock.schedule(100, callback)

        assert clock.advance(99) == 0
        assert clock.advance(1) == 1

        callback.assert_called_once_with()
        assert handle.active is False
        assert clock.now() == 100

    def test_fires_in_deadline_order(self, clock: ManualExpiryScheduler):
        """Test timers fire earliest deadline first, ties by schedule order."""
        fired = []
        clock.schedule(300, lambda: fired.append("c"))
        clock.schedule(100, lambda: fired.append("a"))
        clock.schedule(100, lambda: fired.append("b"))

        clock.advance(1000)

        assert fired == ["a", "b", "c"]

    def test_clock_set_to_deadline_during_callback(self, clock: ManualExpiryScheduler):
        """Test callbacks observe their own deadline as the current time."""
        seen = []
        clock.schedule(250, lambda: seen.append(clock.now()))

        clock.advance(1000)

        assert seen == [250]
        assert clock.now() == 1000

    def test_callback_scheduling_within_window(self, clock: ManualExpiryScheduler):
        """Test timers scheduled by callbacks fire if due inside the window."""
        fired = []

        def first():
            fired.append("first")
            clock.schedule(100, lambda: fired.append("second"))

        clock.schedule(100, first)
        clock.advance(200)

        assert fired == ["first", "second"]

    def test_cancel(self, clock: ManualExpiryScheduler):
        """Test a cancelled timer never fires."""
        callback = Mock()
        handle = clock.schedule(100, callback)

        clock.cancel(handle)
        clock.advance(1000)

        callback.assert_not_called()
        assert clock.pending() == 0

    def test_cancel_is_idempotent(self, clock: ManualExpiryScheduler):
        """Test cancelling twice or after firing is harmless."""
        handle = clock.schedule(10, Mock())
        clock.advance(10)

        clock.cancel(handle)
        clock.cancel(handle)

        assert clock.pending() == 0

    def test_next_deadline_skips_cancelled(self, clock: ManualExpiryScheduler):
        """Test next_deadline ignores cancelled timers."""
        first = clock.schedule(10, Mock())
        clock.schedule(20, Mock())

        clock.cancel(first)

        assert clock.next_deadline() == 20

    def test_compaction_keeps_live_timers(self, clock: ManualExpiryScheduler):
        """Test bulk cancellation does not lose live timers."""
        callback = Mock()
        handles = [clock.schedule(100, Mock()) for _ in range(200)]
        clock.schedule(150, callback)

        for handle in handles:
            clock.cancel(handle)

        assert clock.pending() == 1
        clock.advance(200)
        callback.assert_called_once_with()

    def test_failing_callback_is_logged(
        self,
        clock: ManualExpiryScheduler,
        caplog: pytest.LogCaptureFixture,
    ):
        """Test a raising callback does not stop later timers."""
        after = Mock()
        clock.schedule(10, Mock(side_effect=RuntimeError("boom")))
        clock.schedule(20, after)

        with caplog.at_level(logging.ERROR, logger="timedqueue.scheduler"):
            clock.advance(100)

        after.assert_called_once_with()
        assert "Expiry callback failed" in caplog.text

    def test_advance_backwards(self, clock: ManualExpiryScheduler):
        """Test the clock cannot run backwards."""
        with pytest.raises(ValueError):
            clock.advance(-1)

    def test_shutdown(self, clock: ManualExpiryScheduler):
        """Test shutdown cancels timers and refuses new ones."""
        callback = Mock()
        clock.schedule(10, callback)

        clock.shutdown()
        clock.advance(100)

        callback.assert_not_called()
        with pytest.raises(RuntimeError):
            clock.schedule(10, Mock())


class TestThreadedExpiryScheduler:
    """Tests for the threaded scheduler that do not depend on wall time."""

    def test_thread_started_lazily(self):
        """Test no thread is created until something is scheduled."""
        scheduler = ThreadedExpiryScheduler(name="lazy")
        try:
            assert scheduler.running is False

            scheduler.schedule(60_000, Mock())

            assert scheduler.running is True
            assert scheduler.pending() == 1
        finally:
            scheduler.shutdown()

        assert scheduler.running is False
        assert scheduler.pending() == 0

    def test_cancel_before_fire(self):
        """Test cancelling a far-future timer."""
        scheduler = ThreadedExpiryScheduler()
        try:
            handle = scheduler.schedule(60_000, Mock())
            scheduler.cancel(handle)

            assert scheduler.pending() == 0
            assert handle.active is False
        finally:
            scheduler.shutdown()
