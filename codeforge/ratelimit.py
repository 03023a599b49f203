"""Token-bucket admission control."""

from __future__ import annotations

import threading
import time
from typing import Callable


class TokenBucket:
    """Thread-safe token bucket.

    Tokens accrue at ``refill_rate`` per second up to ``capacity``. Each
    admitted operation consumes one. Waiting callers sleep for the computed
    deficit instead of spinning.
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if capacity <= 0:
            raise ValueError("Token bucket capacity must be positive.")
        if refill_rate <= 0:
            raise ValueError("Token bucket refill rate must be positive.")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(capacity)
        self._updated = clock()

    @property
    def tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._updated = now

    def _take(self) -> float:
        """Consume a token and return 0, or return the seconds until one is available."""

        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) / self.refill_rate

    def try_acquire(self) -> bool:
        return self._take() == 0.0

    def wait_for_token(self) -> None:
        while True:
            wait = self._take()
            if wait == 0.0:
                return
            self._sleep(wait)
