"""In-process sliding-window rate limiting for public lookups.

State lives in the worker process, so each worker enforces its own limit.
"""
import logging
import time
from collections import deque
from collections.abc import Callable

from fastapi import Depends, Request

from epass.core.config import Settings, get_settings, settings
from epass.core.errors import TooManyRequests

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Allow at most ``max_requests`` per key within ``window_seconds``."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: dict[str, deque[float]] = {}

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        for key in list(self._hits):
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if not hits:
                del self._hits[key]

    def hit(self, key: str) -> bool:
        """Record a request for ``key``. Returns False if it is over the limit."""
        now = self.clock()
        self._prune(now)
        hits = self._hits.setdefault(key, deque())
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def reset(self) -> None:
        self._hits.clear()


find_pass_limiter = SlidingWindowLimiter(
    settings.find_pass_rate_limit,
    settings.find_pass_rate_window_seconds,
)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def limit_find_pass(request: Request, config: Settings = Depends(get_settings)) -> None:
    """Dependency rejecting clients that look up passes too often."""
    if config.find_pass_rate_limit <= 0:
        return
    find_pass_limiter.max_requests = config.find_pass_rate_limit
    find_pass_limiter.window_seconds = config.find_pass_rate_window_seconds
    ip = client_ip(request)
    if not find_pass_limiter.hit(ip):
        logger.warning(f"Rate limited find-pass lookups from {ip}")
        raise TooManyRequests()
