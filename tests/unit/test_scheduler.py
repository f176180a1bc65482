"""Unit tests for the poll scheduler."""

import threading
import pytest

from motionlab.client.scheduler import RepeatingTimer, ThreadingScheduler


class TestRepeatingTimer:
    """Tests for RepeatingTimer."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            RepeatingTimer(0, lambda: None)

    def test_fires_repeatedly_until_cancelled(self):
        fired = threading.Semaphore(0)
        timer = ThreadingScheduler().schedule(0.01, fired.release)

        try:
            assert fired.acquire(timeout=2)
            assert fired.acquire(timeout=2)
        finally:
            timer.cancel()

        assert timer.cancelled

    def test_first_tick_waits_one_interval(self):
        calls = []
        timer = RepeatingTimer(60, lambda: calls.append(1)).start()
        timer.cancel()

        assert calls == []

    def test_cancel_before_tick_suppresses_callback(self):
        calls = []
        timer = RepeatingTimer(60, lambda: calls.append(1))
        timer.cancel()

        timer._fire()

        assert calls == []

    def test_callback_exception_is_contained(self):
        def boom():
            raise RuntimeError("poll failed")

        RepeatingTimer(1, boom)._fire()
