"""Authority Provider and Backlink Snapshot Source backed by SE Ranking.

Uses Token authentication. A project key selects the v3 project API,
otherwise the v1 data API is used.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Optional

from loguru import logger

from ..config import Settings
from ..exceptions import ProviderUnavailable
from ..utils.helpers import extract_domain
from ..utils.rate_limiter import RateLimiter
from .base import (
    AuthorityProvider, SnapshotSource, AuthorityEstimate, ReferringDomain, ObservedLink,
)
from .http import ProviderClient, DEFAULT_WAIT

SE_RANKING_DATA_API_BASE = "https://api.seranking.com/v1"
SE_RANKING_PROJECT_API_BASE = "https://api.seranking.com/v3"

# Field names differ between API versions; first present wins
_REFERRING_URL_FIELDS = ("source_url", "url_from", "referring_page")
_TARGET_URL_FIELDS = ("target_url", "url_to", "destination_url", "target_page")
_ANCHOR_FIELDS = ("anchor_text", "anchor")
_AUTHORITY_FIELDS = ("domain_authority", "domain_rank", "inlink_rank")
_SPAM_FIELDS = ("spam_score", "toxic_score")


def _first(item: Dict[str, Any], fields) -> Any:
    for name in fields:
        value = item.get(name)
        if value not in (None, ""):
            return value
    return None


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _is_dofollow(item: Dict[str, Any]) -> bool:
    if "dofollow" in item:
        return bool(item["dofollow"])
    if "nofollow" in item:
        return not item["nofollow"]
    return (item.get("link_type") or "dofollow").lower() != "nofollow"


class SERankingProvider(ProviderClient, AuthorityProvider, SnapshotSource):
    """SE Ranking backlinks and domain overview endpoints."""

    name = "se_ranking"

    def __init__(
        self,
        settings: Settings,
        rate_limiter: Optional[RateLimiter] = None,
        wait=DEFAULT_WAIT,
        session=None,
    ):
        super().__init__(
            timeout=settings.request_timeout_seconds,
            attempts=settings.provider_retry_attempts,
            rate_limiter=rate_limiter,
            wait=wait,
            session=session,
        )
        if settings.se_ranking_project_api_key:
            self.api_key = settings.se_ranking_project_api_key
            self.api_base = SE_RANKING_PROJECT_API_BASE
        else:
            self.api_key = settings.se_ranking_api_key
            self.api_base = SE_RANKING_DATA_API_BASE
        self.snapshot_limit = settings.snapshot_limit

    def _get(self, path: str, params: dict) -> Dict[str, Any]:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "SE Ranking API key not configured")
        data = self.request_json(
            "GET",
            f"{self.api_base}{path}",
            params=params,
            headers={"Authorization": f"Token {self.api_key}", "Content-Type": "application/json"},
        )
        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, f"unexpected response shape from {path}")
        return data

    def _backlinks(self, domain: str, limit: int) -> List[Dict[str, Any]]:
        data = self._get("/backlinks", {"target": domain, "limit": limit})
        backlinks = data.get("backlinks") or []
        logger.debug("SE Ranking returned {} backlinks for {}", len(backlinks), domain)
        return [b for b in backlinks if isinstance(b, dict)]

    def authority_of(self, domain: str) -> AuthorityEstimate:
        data = self._get("/domain/overview", {"domain": domain})
        return AuthorityEstimate(
            authority=_as_int(_first(data, _AUTHORITY_FIELDS)),
            spam=_as_int(_first(data, _SPAM_FIELDS)),
            source="real",
        )

    def referring_domains_of(self, domain: str) -> List[ReferringDomain]:
        """Referring domains of ``domain``, most links first."""
        grouped: "OrderedDict[str, ReferringDomain]" = OrderedDict()
        for item in self._backlinks(domain, self.snapshot_limit):
            ref_domain = extract_domain(_first(item, _REFERRING_URL_FIELDS) or item.get("referring_domain"))
            if not ref_domain:
                continue
            authority = _as_int(_first(item, _AUTHORITY_FIELDS))
            entry = grouped.get(ref_domain)
            if entry is None:
                grouped[ref_domain] = ReferringDomain(domain=ref_domain, authority=authority, link_count=1)
            else:
                entry.link_count += 1
                if authority is not None and (entry.authority is None or authority > entry.authority):
                    entry.authority = authority
        return sorted(grouped.values(), key=lambda r: r.link_count, reverse=True)

    def snapshot_for(self, domain: str) -> List[ObservedLink]:
        links = []
        for item in self._backlinks(domain, self.snapshot_limit):
            referring_url = _first(item, _REFERRING_URL_FIELDS)
            if not referring_url:
                continue
            links.append(ObservedLink(
                referring_url=referring_url,
                target_url=_first(item, _TARGET_URL_FIELDS),
                anchor_text=_first(item, _ANCHOR_FIELDS),
                is_dofollow=_is_dofollow(item),
                authority=_as_int(_first(item, _AUTHORITY_FIELDS)),
                page_authority=_as_int(item.get("page_authority")),
            ))
        logger.info("Snapshot for {}: {} links", domain, len(links))
        return links
