"""Per-client sliding-window request limiter."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Allows at most ``limit`` requests per key within any ``window`` seconds."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window: float) -> bool:
        """Record a request for *key* and return whether it is within the limit.

        Rejected requests are not recorded.
        """
        now = self._clock()
        with self._lock:
            stamps = self._requests.get(key)
            if stamps is not None:
                while stamps and now - stamps[0] >= window:
                    stamps.popleft()
                if len(stamps) >= limit:
                    return False
            elif limit <= 0:
                return False
            else:
                stamps = self._requests[key] = deque()
            stamps.append(now)
            return True

    def prune(self, window: float) -> int:
        """Forget keys with no request inside the last *window* seconds.

        Returns the number of keys dropped.
        """
        now = self._clock()
        with self._lock:
            idle = [k for k, stamps in self._requests.items() if not stamps or now - stamps[-1] >= window]
            for key in idle:
                del self._requests[key]
        if idle:
            logger.debug("Pruned %d idle rate-limit keys", len(idle))
        return len(idle)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
