"""
Metrics Aggregator: read-side summaries over monitored backlinks.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import ValidationError, WebsiteNotFound
from ..models.backlink import Backlink, BacklinkCheck, BacklinkStatus, CheckStatus
from ..models.website import Website

TOP_DOMAINS_LIMIT = 10
TOP_ANCHORS_LIMIT = 10

AUTHORITY_BUCKETS = [
    ("0-20", 0, 20),
    ("21-40", 21, 40),
    ("41-60", 41, 60),
    ("61-80", 61, 80),
    ("81-100", 81, 100),
]


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def authority_distribution(backlinks: List[Backlink]) -> dict:
    """Count links per authority bucket; links without authority go to 'unknown'."""
    distribution = {label: 0 for label, _, _ in AUTHORITY_BUCKETS}
    distribution["unknown"] = 0
    for backlink in backlinks:
        da = backlink.domain_authority
        if da is None:
            distribution["unknown"] += 1
            continue
        for label, low, high in AUTHORITY_BUCKETS:
            if low <= da <= high:
                distribution[label] += 1
                break
    return distribution


def link_rollup(backlinks: List[Backlink]) -> dict[str, Any]:
    """Domain, anchor, authority and follow aggregates over a set of links."""
    domains = Counter(b.referring_domain for b in backlinks)
    anchors = Counter(b.anchor_text.strip() for b in backlinks if b.anchor_text and b.anchor_text.strip())
    authorities = [b.domain_authority for b in backlinks if b.domain_authority is not None]
    dofollow = sum(1 for b in backlinks if b.is_dofollow)
    return {
        "total": len(backlinks),
        "referring_domains": len(domains),
        "dofollow": dofollow,
        "nofollow": len(backlinks) - dofollow,
        "average_domain_authority": (
            round(sum(authorities) / len(authorities), 1) if authorities else None
        ),
        "top_referring_domains": [
            {"domain": domain, "count": count}
            for domain, count in domains.most_common(TOP_DOMAINS_LIMIT)
        ],
        "top_anchors": [
            {"anchor": anchor, "count": count}
            for anchor, count in anchors.most_common(TOP_ANCHORS_LIMIT)
        ],
    }


class MetricsAggregator:
    """Point-in-time summary and windowed history for one website."""

    def __init__(self, session: Session):
        self.session = session

    def _require_website(self, website_id: int) -> Website:
        website = self.session.get(Website, website_id) if website_id is not None else None
        if website is None:
            raise WebsiteNotFound(website_id)
        return website

    def summary(self, website_id: int, now: Optional[datetime] = None) -> dict[str, Any]:
        """Totals, dofollow share, average authority, new-this-month and top domains."""
        self._require_website(website_id)
        now = now or datetime.utcnow()

        active = (
            self.session.query(Backlink)
            .filter(Backlink.website_id == website_id, Backlink.status == BacklinkStatus.ACTIVE)
            .all()
        )
        lost_total = (
            self.session.query(Backlink)
            .filter(Backlink.website_id == website_id, Backlink.status == BacklinkStatus.LOST)
            .count()
        )

        month_start = start_of_month(now)
        new_this_month = sum(1 for b in active if b.first_seen and b.first_seen >= month_start)

        rollup = link_rollup(active)
        total = rollup["total"]
        dofollow = rollup["dofollow"]

        latest = (
            self.session.query(BacklinkCheck)
            .filter(BacklinkCheck.website_id == website_id, BacklinkCheck.status == CheckStatus.COMPLETED)
            .order_by(BacklinkCheck.check_date.desc(), BacklinkCheck.id.desc())
            .first()
        )

        return {
            "total_backlinks": total,
            "new_this_month": new_this_month,
            "lost_backlinks": lost_total,
            "total_referring_domains": rollup["referring_domains"],
            "dofollow_count": dofollow,
            "nofollow_count": rollup["nofollow"],
            "dofollow_percentage": round(dofollow / total * 100, 1) if total else 0,
            "average_domain_authority": rollup["average_domain_authority"],
            "top_referring_domains": rollup["top_referring_domains"],
            "top_anchors": rollup["top_anchors"],
            "authority_distribution": authority_distribution(active),
            "latest_check": latest.to_dict() if latest else None,
        }

    def history(self, website_id: int, days: int = 30, now: Optional[datetime] = None) -> List[dict]:
        """Completed check summaries inside the window, oldest first."""
        self._require_website(website_id)
        if days is None or days <= 0:
            raise ValidationError("days must be positive")
        now = now or datetime.utcnow()
        since = now - timedelta(days=days)

        checks = (
            self.session.query(BacklinkCheck)
            .filter(
                BacklinkCheck.website_id == website_id,
                BacklinkCheck.status == CheckStatus.COMPLETED,
                BacklinkCheck.check_date >= since,
            )
            .order_by(BacklinkCheck.check_date.asc(), BacklinkCheck.id.asc())
            .all()
        )
        return [
            {
                "check_id": c.id,
                "date": c.check_date.isoformat() if c.check_date else None,
                "total_backlinks": c.total_backlinks,
                "referring_domains": c.total_referring_domains,
                "new_backlinks": c.new_backlinks_count,
                "lost_backlinks": c.lost_backlinks_count,
                "dofollow_count": c.dofollow_count,
                "avg_domain_authority": c.avg_domain_authority,
            }
            for c in checks
        ]

    def list_backlinks(self, website_id: int, status=None) -> List[Backlink]:
        self._require_website(website_id)
        query = self.session.query(Backlink).filter(Backlink.website_id == website_id)
        if status is not None:
            try:
                status = BacklinkStatus(status)
            except ValueError:
                raise ValidationError(f"Invalid backlink status '{status}'")
            query = query.filter(Backlink.status == status)
        return query.order_by(Backlink.last_seen.desc(), Backlink.id).all()
