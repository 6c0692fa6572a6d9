"""Search Provider backed by the Serper Google Search API."""

from typing import List, Optional

from loguru import logger

from ..config import Settings
from ..exceptions import ProviderUnavailable
from ..utils.rate_limiter import RateLimiter
from .base import SearchProvider, SearchResult
from .http import ProviderClient, DEFAULT_WAIT

SERPER_API_URL = "https://google.serper.dev/search"


class SerperSearchProvider(ProviderClient, SearchProvider):
    """Organic Google results via google.serper.dev."""

    name = "serper"

    def __init__(
        self,
        settings: Settings,
        rate_limiter: Optional[RateLimiter] = None,
        wait=DEFAULT_WAIT,
        session=None,
        num_results: int = 10,
    ):
        super().__init__(
            timeout=settings.request_timeout_seconds,
            attempts=settings.provider_retry_attempts,
            rate_limiter=rate_limiter,
            wait=wait,
            session=session,
        )
        self.api_key = settings.serper_api_key
        self.num_results = num_results

    def search(self, keyword: str) -> List[SearchResult]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "SERPER_API_KEY not configured")

        logger.info("Searching Serper for '{}'", keyword)
        data = self.request_json(
            "POST",
            SERPER_API_URL,
            json={"q": keyword, "num": self.num_results},
            headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
        )
        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, "unexpected response shape")

        results = []
        for index, item in enumerate(data.get("organic") or []):
            if not isinstance(item, dict):
                continue
            link = item.get("link")
            if not link:
                continue
            results.append(SearchResult(
                url=link,
                title=item.get("title", ""),
                position=item.get("position", index + 1),
            ))
        logger.debug("Serper returned {} results for '{}'", len(results), keyword)
        return results
