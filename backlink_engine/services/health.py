"""
Health Scorer and liveness verification for acquired backlinks.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from ..config import Settings, get_settings
from ..models.acquired import AcquiredBacklink
from ..utils.helpers import clamp, extract_domain

DEFAULT_AUTHORITY = 50


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def recency_term(last_checked: Optional[datetime], now: datetime) -> int:
    """Points for how recently the link was verified (never verified: 10)."""
    if last_checked is None:
        return 10
    days = max((now - last_checked).days, 0)
    if days == 0:
        return 20
    if days <= 7:
        return 15
    if days <= 30:
        return 10
    return 5


def health_status(average_health: float) -> str:
    if average_health >= 80:
        return "Excellent"
    if average_health >= 60:
        return "Good"
    return "Needs Attention"


class HealthScorer:
    """Composite 0-100 health per acquired backlink and a website summary.

    health = 50 x active + 30 x min(authority / 100, 1) + recency
    """

    def __init__(self, now: Optional[datetime] = None):
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.utcnow()

    def score(self, backlink: AcquiredBacklink) -> int:
        authority = backlink.domain_authority if backlink.domain_authority is not None else DEFAULT_AUTHORITY
        total = (
            (50 if backlink.is_active else 0)
            + min(authority / 100 * 30, 30)
            + recency_term(backlink.last_checked, self.now)
        )
        return int(clamp(round_half_up(total), 0, 100))

    def summary(self, backlinks: List[AcquiredBacklink]) -> dict:
        if not backlinks:
            return {
                "total_backlinks": 0,
                "active_backlinks": 0,
                "broken_backlinks": 0,
                "active_percentage": 0,
                "average_domain_authority": 0,
                "average_health": 0,
                "health_status": "No Data",
                "backlinks": [],
            }

        total = len(backlinks)
        active = sum(1 for b in backlinks if b.is_active)
        scores = [self.score(b) for b in backlinks]
        authorities = [
            b.domain_authority if b.domain_authority is not None else DEFAULT_AUTHORITY
            for b in backlinks
        ]
        average_health = round_half_up(sum(scores) / total)

        return {
            "total_backlinks": total,
            "active_backlinks": active,
            "broken_backlinks": total - active,
            "active_percentage": round_half_up(active / total * 100),
            "average_domain_authority": round_half_up(sum(authorities) / total),
            "average_health": average_health,
            "health_status": health_status(average_health),
            "backlinks": [
                {"id": b.id, "backlink_url": b.backlink_url, "is_active": b.is_active, "health": s}
                for b, s in zip(backlinks, scores)
            ],
        }


@dataclass
class VerificationResult:
    """Outcome of fetching a page that should carry our link."""
    is_live: bool
    status_code: Optional[int] = None
    found_anchor_text: Optional[str] = None
    found_url: Optional[str] = None
    error: Optional[str] = None
    checked_at: datetime = field(default_factory=datetime.utcnow)


def _page_links_to(html: str, target: str) -> Optional[str]:
    """Return the first href on the page pointing at ``target`` (URL or domain)."""
    target_domain = extract_domain(target)
    soup = BeautifulSoup(html, "html.parser")
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if target in href:
            return href
        href_domain = extract_domain(href) if "//" in href else ""
        if target_domain and (href_domain == target_domain or href_domain.endswith("." + target_domain)):
            return href
    if target in html:
        return target
    return None


class BacklinkVerifier:
    """Fetch a linking page and decide whether our link is still there."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self.client = client or httpx.Client()

    def verify(
        self,
        backlink_url: str,
        anchor_text: Optional[str] = None,
        target: Optional[str] = None,
    ) -> VerificationResult:
        """Never raises; fetch errors come back as a non-live result."""
        logger.info("Verifying backlink: {}", backlink_url)
        try:
            response = self.client.get(
                backlink_url,
                timeout=self.settings.request_timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": self.settings.user_agent},
            )
        except httpx.HTTPError as exc:
            logger.warning("Error verifying backlink {}: {}", backlink_url, exc)
            return VerificationResult(is_live=False, error=str(exc) or exc.__class__.__name__)

        status_code = response.status_code
        if status_code >= 400:
            logger.warning("Backlink page {} returned HTTP {}", backlink_url, status_code)
            return VerificationResult(is_live=False, status_code=status_code, error=f"HTTP {status_code}")

        html = response.text or ""
        result = VerificationResult(is_live=False, status_code=status_code)

        if anchor_text and anchor_text in html:
            result.is_live = True
            result.found_anchor_text = anchor_text

        if target and not result.is_live:
            found = _page_links_to(html, target)
            if found:
                result.is_live = True
                result.found_url = found

        if not anchor_text and not target and status_code == 200:
            result.is_live = True

        logger.info("Verification complete for {} - live: {}", backlink_url, result.is_live)
        return result

    def close(self):
        self.client.close()
