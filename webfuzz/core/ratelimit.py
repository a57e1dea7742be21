"""Token bucket shared by all workers of a job."""

import threading
import time
from typing import Optional


class RateLimiter:
    """
    Caps requests per second across the whole worker pool.

    The bucket holds at most one second worth of tokens (and never less than
    one), so a paused or idle pool cannot build up a burst larger than the
    configured rate.
    rate <= 0 disables limiting.
    """

    def __init__(self, rate: float, clock=time.monotonic, sleep=time.sleep):
        self.rate = float(rate) if rate and rate > 0 else 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._capacity = max(self.rate, 1.0)
        self._tokens = self._capacity if self.rate else 0.0
        self._last = clock()

    @property
    def enabled(self) -> bool:
        return self.rate > 0

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self._capacity, self._tokens + (now - self._last) * self.rate)
        self._last = now

    def acquire(self, stop: Optional[threading.Event] = None) -> bool:
        """Block until a token is available. False if *stop* got set meanwhile."""
        if not self.enabled:
            return True
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return True
                wait = (1 - self._tokens) / self.rate
            if stop is not None:
                if stop.wait(wait):
                    return False
            else:
                self._sleep(wait)
