from fastapi import Request
from typing import Callable, Dict, List, Optional
import threading
import time

from ..utils.exceptions import RateLimitExceededException

WINDOW_SECONDS = 60

class RateLimiter:
    def __init__(self, limit_per_minute: int, clock: Callable[[], float] = time.time):
        self.limit_per_minute = limit_per_minute
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _clean_old_requests(self, client_key: str, now: float):
        """Remove requests older than 1 minute"""
        if client_key in self._requests:
            self._requests[client_key] = [
                req_time for req_time in self._requests[client_key]
                if req_time > now - WINDOW_SECONDS
            ]
            if not self._requests[client_key]:
                del self._requests[client_key]

    def _sweep(self, now: float):
        """Drop clients with no request inside the window, at most once per window"""
        if now - self._last_sweep < WINDOW_SECONDS:
            return
        cutoff = now - WINDOW_SECONDS
        stale = [key for key, times in self._requests.items() if not times or times[-1] <= cutoff]
        for key in stale:
            del self._requests[key]
        self._last_sweep = now

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._requests)

    def hit(self, client_key: str) -> None:
        """
        Record a request for ``client_key``

        Raises:
            RateLimitExceededException: If the client exceeded its quota
        """
        now = self._clock()
        with self._lock:
            self._sweep(now)
            self._clean_old_requests(client_key, now)
            recent = self._requests.setdefault(client_key, [])
            if len(recent) >= self.limit_per_minute:
                raise RateLimitExceededException()
            recent.append(now)

    async def check_rate_limit(self, request: Request, key: Optional[str] = None):
        """
        Check if request should be rate limited

        Args:
            request: FastAPI request object
            key: Optional custom key for rate limiting (defaults to IP address)
        """
        client_key = key or (request.client.host if request.client else "unknown")
        self.hit(client_key)
