"""
Fixed-rate periodic timer on a single dedicated thread.
"""

import threading
import time
from typing import Callable, Optional

from soundsense.utils.logger import get_logger

logger = get_logger("soundsense.PeriodicTimer")


class PeriodicTimer:
    """
    Runs `callback` every `interval_ms`, first run immediately.

    Runs are scheduled from the timer's own monotonic clock, so a slow
    callback does not shift later runs. Ticks missed while a callback
    overran are dropped; the next run lands on the following tick.
    """

    def __init__(self, interval_ms: int, callback: Callable[[], None], name: str = "PeriodicTimer"):
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self.interval_ms = interval_ms
        self.callback = callback
        self.name = name

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop_event.is_set()
        )

    def start(self):
        if self._thread is not None:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"[{self.name}] started, interval {self.interval_ms}ms")

    def cancel(self, timeout: float = 1.0):
        """Stop future runs. Waits briefly for a run in progress unless called from the timer thread."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=timeout)
        logger.debug(f"[{self.name}] cancelled after {self.runs} run(s)")

    def _run(self):
        interval = self.interval_ms / 1000.0
        next_run = time.monotonic()

        while not self._stop_event.is_set():
            delay = next_run - time.monotonic()
            if delay > 0 and self._stop_event.wait(delay):
                break

            try:
                self.callback()
            except Exception as e:
                logger.error(f"[{self.name}] callback error: {e}", exc_info=True)
            self.runs += 1

            next_run += interval
            now = time.monotonic()
            if next_run < now:
                missed = int((now - next_run) // interval) + 1
                next_run += missed * interval
