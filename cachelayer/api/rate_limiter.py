"""
Fixed-window rate limiting per client address.
"""
import math
import threading
import time
import logging
from typing import Callable, Dict, Tuple

from cachelayer.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.time):
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        # client id -> (request count, window reset time)
        self._clients: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, client_id: str) -> int:
        """
        Count one request for the client and return how many it has left in the window.
        Raises RateLimitExceededError once the window is used up.
        """
        now = self._clock()
        with self._lock:
            count, reset_at = self._clients.get(client_id, (0, 0.0))
            if now > reset_at:
                self._prune(now)
                count, reset_at = 0, now + self._window_seconds
            if count >= self._max_requests:
                retry_after = max(1, math.ceil(reset_at - now))
                logger.warning(f"Rate limit exceeded for client {client_id}")
                raise RateLimitExceededError(client_id, retry_after)
            self._clients[client_id] = (count + 1, reset_at)
            return self._max_requests - count - 1

    def _prune(self, now: float) -> None:
        stale = [client for client, (_, reset_at) in self._clients.items() if now > reset_at]
        for client in stale:
            del self._clients[client]

    def reset(self) -> None:
        with self._lock:
            self._clients.clear()
