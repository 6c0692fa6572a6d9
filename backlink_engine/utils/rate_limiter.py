"""Rate limiter for respectful provider and page requests."""

import threading
import time
from collections import defaultdict
from typing import Optional

from loguru import logger

from ..config import get_settings
from .helpers import extract_domain


class RateLimiter:
    """
    Sliding-window rate limiter for outbound requests.

    Enforces, per host:
    1. A cap on requests per minute
    2. A minimum delay between consecutive requests
    """

    def __init__(
        self,
        requests_per_minute: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        sleep=time.sleep,
    ):
        settings = get_settings()
        self.requests_per_minute = requests_per_minute or settings.max_requests_per_minute
        self.delay_seconds = settings.request_delay_seconds if delay_seconds is None else delay_seconds
        self._sleep = sleep

        # Track requests per host
        self._domain_timestamps: dict[str, list[float]] = defaultdict(list)
        self._last_request_time: dict[str, float] = defaultdict(float)
        self._lock = threading.Lock()

    def _cleanup_old_timestamps(self, domain: str, window_seconds: int = 60):
        """Remove timestamps older than the window."""
        cutoff = time.time() - window_seconds
        self._domain_timestamps[domain] = [
            ts for ts in self._domain_timestamps[domain]
            if ts > cutoff
        ]

    def acquire(self, url: str) -> None:
        """Block until a request to ``url`` is allowed."""
        domain = extract_domain(url)

        with self._lock:
            current_time = time.time()
            self._cleanup_old_timestamps(domain)

            if len(self._domain_timestamps[domain]) >= self.requests_per_minute:
                oldest = min(self._domain_timestamps[domain])
                wait_time = 60 - (current_time - oldest)
                if wait_time > 0:
                    logger.debug("Rate limit reached for {}, waiting {:.1f}s", domain, wait_time)
                    self._sleep(wait_time)
                    current_time = time.time()
                    self._cleanup_old_timestamps(domain)

            last_request = self._last_request_time[domain]
            if last_request > 0:
                time_since_last = current_time - last_request
                if time_since_last < self.delay_seconds:
                    wait_time = self.delay_seconds - time_since_last
                    logger.debug("Enforcing delay for {}, waiting {:.1f}s", domain, wait_time)
                    self._sleep(wait_time)
                    current_time = time.time()

            self._domain_timestamps[domain].append(current_time)
            self._last_request_time[domain] = current_time

    def get_stats(self, domain: str = None) -> dict:
        """Get rate limiting statistics."""
        if domain:
            self._cleanup_old_timestamps(domain)
            return {
                "domain": domain,
                "requests_last_minute": len(self._domain_timestamps[domain]),
                "limit": self.requests_per_minute
            }

        stats = {}
        for d in list(self._domain_timestamps):
            self._cleanup_old_timestamps(d)
            stats[d] = {
                "requests_last_minute": len(self._domain_timestamps[d]),
                "limit": self.requests_per_minute
            }
        return stats


# Global rate limiter instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
