"""Per-website single-flight locks for monitoring runs."""

import threading
from contextlib import contextmanager
from typing import Dict

from ..exceptions import CheckAlreadyRunning


class WebsiteLocks:
    """Non-blocking per-key locks: a second caller fails fast instead of queueing."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def _lock_for(self, website_id: int) -> threading.Lock:
        with self._guard:
            if website_id not in self._locks:
                self._locks[website_id] = threading.Lock()
            return self._locks[website_id]

    @contextmanager
    def hold(self, website_id: int):
        lock = self._lock_for(website_id)
        if not lock.acquire(blocking=False):
            raise CheckAlreadyRunning(website_id)
        try:
            yield
        finally:
            lock.release()

    def is_held(self, website_id: int) -> bool:
        return self._lock_for(website_id).locked()


# Shared by every differ in the process
_website_locks = WebsiteLocks()


def get_website_locks() -> WebsiteLocks:
    return _website_locks
