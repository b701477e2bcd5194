from __future__ import annotations

import threading
import time
from typing import Callable

from .run_log import RunLogger

NowFn = Callable[[], float]
SleepFn = Callable[[float], None]


class RateLimiter:
    """
    Fixed-window request counter.

    acquire() blocks until a slot in the current window is available; it never rejects.
    Construct one per process and share it between analyzers that hit the same provider.
    """

    def __init__(
        self,
        max_requests_per_minute: int = 50,
        *,
        window_seconds: float = 60.0,
        now_fn: NowFn | None = None,
        sleep_fn: SleepFn | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        if int(max_requests_per_minute) < 1:
            raise ValueError("max_requests_per_minute must be >= 1")
        if float(window_seconds) <= 0:
            raise ValueError("window_seconds must be > 0")

        self.max_requests = int(max_requests_per_minute)
        self.window_seconds = float(window_seconds)
        self._now = now_fn or time.monotonic
        self._sleep = sleep_fn or time.sleep
        self._logger = logger
        self._lock = threading.Lock()

        self.window_start = self._now()
        self.count = 0

    def acquire(self) -> float:
        """Take one slot, waiting for the window to roll over if needed; returns seconds waited."""
        waited = 0.0
        while True:
            with self._lock:
                now = self._now()
                if now - self.window_start >= self.window_seconds:
                    self.window_start = now
                    self.count = 0

                if self.count < self.max_requests:
                    self.count += 1
                    return waited

                saturated_window = self.window_start
                wait = max(0.0, self.window_seconds - (now - saturated_window))

            if self._logger is not None:
                self._logger.info(
                    "rate_limit_wait",
                    wait_seconds=round(wait, 3),
                    max_requests_per_minute=self.max_requests,
                )
            self._sleep(wait)
            waited += wait

            with self._lock:
                # The window we waited out is over, even if the clock disagrees.
                if self.window_start == saturated_window:
                    self.window_start = self._now()
                    self.count = 0
