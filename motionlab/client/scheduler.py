"""Cancellable fixed-interval scheduling for status polls."""

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def schedule(self, interval: float, callback: Callable[[], None]) -> ScheduledHandle: ...


class RepeatingTimer:
    """Calls `callback` every `interval` seconds until cancelled.

    The first call happens one interval after `start()`. Each call runs on
    its own daemon thread, so a slow call never delays the next tick.
    """

    def __init__(self, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name="poll-timer", daemon=True)

    def start(self) -> "RepeatingTimer":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            threading.Thread(target=self._fire, name="poll-tick", daemon=True).start()

    def _fire(self) -> None:
        if self._stopped.is_set():
            return
        try:
            self.callback()
        except Exception:
            logger.exception("Scheduled poll raised")


class ThreadingScheduler:
    """Scheduler backed by real threads."""

    def schedule(self, interval: float, callback: Callable[[], None]) -> RepeatingTimer:
        return RepeatingTimer(interval, callback).start()
