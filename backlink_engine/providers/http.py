"""
Shared HTTP plumbing for provider clients: timeout, pacing, retries.
"""

from typing import Any, Optional

import requests
from loguru import logger
from tenacity import (
    Retrying, retry_if_exception, stop_after_attempt, wait_exponential,
)

from ..exceptions import ProviderUnavailable
from ..utils.rate_limiter import RateLimiter

DEFAULT_WAIT = wait_exponential(multiplier=1, min=2, max=10)


def _is_transient(exc: BaseException) -> bool:
    """Timeouts, connection drops, 429 and 5xx are worth another attempt."""
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


class ProviderClient:
    """Base for provider clients that talk JSON over HTTP."""

    name = "provider"

    def __init__(
        self,
        timeout: float,
        attempts: int = 3,
        rate_limiter: Optional[RateLimiter] = None,
        wait=DEFAULT_WAIT,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.attempts = max(attempts, 1)
        self.rate_limiter = rate_limiter
        self.wait = wait
        self.http = session or requests.Session()

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        if self.rate_limiter is not None:
            self.rate_limiter.acquire(url)
        response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response

    def request_json(self, method: str, url: str, **kwargs) -> Any:
        """Send a request with retries and return the decoded JSON body.

        Raises:
            ProviderUnavailable: after the last failed attempt, or when the
                body is not JSON.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=self.wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        try:
            response = retrying(self._send, method, url, **kwargs)
        except requests.RequestException as exc:
            logger.warning("{} request to {} failed: {}", self.name, url, exc)
            raise ProviderUnavailable(self.name, str(exc)) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailable(self.name, f"invalid JSON from {url}") from exc

    def close(self) -> None:
        self.http.close()
