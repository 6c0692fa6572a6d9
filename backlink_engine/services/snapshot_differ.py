"""
Snapshot Differ: reconcile a fresh backlink snapshot against stored history.

A run proceeds in two phases inside one transaction:

1. upsert every observed link, tagging it with the run's check id;
2. flip every still-active link of the website that this run did not
   tag to ``lost``.

Phase 2 only happens after phase 1 has been flushed in full. If anything
fails, the transaction is rolled back, so no link status changes, and the
check row (committed up front) is marked ``failed`` with the error.
Runs are single-flight per website.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import get_settings
from ..exceptions import (
    BacklinkEngineError, CheckAlreadyRunning, ProviderUnavailable, SnapshotRunFailure, WebsiteNotFound,
)
from ..models.backlink import Backlink, BacklinkCheck, BacklinkStatus, CheckStatus
from ..models.opportunity import DataSource
from ..models.website import Website
from ..providers.base import ObservedLink, SnapshotSource
from ..utils.helpers import default_target_url, extract_domain
from ..utils.locks import WebsiteLocks, get_website_locks
from .metrics import link_rollup


@dataclass
class CheckResult:
    """Outcome of one completed monitoring run."""
    check_id: int
    new_backlinks: int
    updated_backlinks: int
    lost_backlinks: int
    total_active: int
    referring_domains: int

    def to_dict(self) -> dict:
        return asdict(self)


class SnapshotDiffer:
    """Run monitoring checks for websites."""

    def __init__(
        self,
        session: Session,
        snapshot_source: Optional[SnapshotSource] = None,
        locks: Optional[WebsiteLocks] = None,
        stale_after_minutes: Optional[int] = None,
    ):
        self.session = session
        self.snapshot_source = snapshot_source
        self.locks = locks or get_website_locks()
        if stale_after_minutes is None:
            stale_after_minutes = get_settings().check_stale_after_minutes
        self.stale_after = timedelta(minutes=stale_after_minutes)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        website_id: int,
        snapshot: Optional[List[ObservedLink]] = None,
        data_source: DataSource = DataSource.REAL,
    ) -> CheckResult:
        """Fetch (unless given) and reconcile a snapshot for one website.

        Raises:
            WebsiteNotFound: unknown website; nothing is recorded.
            CheckAlreadyRunning: another run for this website is in flight.
            SnapshotRunFailure: the run failed; its check row says why.
        """
        website = self.session.get(Website, website_id) if website_id is not None else None
        if website is None:
            raise WebsiteNotFound(website_id)

        with self.locks.hold(website_id):
            self._guard_running(website_id)

            check = BacklinkCheck(
                website_id=website_id,
                status=CheckStatus.IN_PROGRESS,
                data_source=data_source,
                check_date=datetime.utcnow(),
            )
            self.session.add(check)
            self.session.commit()
            check_id = check.id
            logger.info("Backlink check {} started for {}", check_id, website.domain)

            try:
                if snapshot is None:
                    snapshot = self._fetch(website.domain)
                result = self._reconcile(website, check, snapshot)
                self.session.commit()
            except Exception as exc:
                self.session.rollback()
                self._mark_failed(check_id, exc)
                raise SnapshotRunFailure(check_id, str(exc)) from exc

        logger.info(
            "Backlink check {} completed for {}: {} new, {} lost, {} active",
            check_id, website.domain, result.new_backlinks, result.lost_backlinks, result.total_active
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, domain: str) -> List[ObservedLink]:
        if self.snapshot_source is None:
            raise ProviderUnavailable("snapshot", "no snapshot source configured")
        return self.snapshot_source.snapshot_for(domain)

    def _guard_running(self, website_id: int):
        """Reject a run while a fresh in-progress check exists; expire stale ones."""
        cutoff = datetime.utcnow() - self.stale_after
        running = (
            self.session.query(BacklinkCheck)
            .filter(
                BacklinkCheck.website_id == website_id,
                BacklinkCheck.status == CheckStatus.IN_PROGRESS,
            )
            .all()
        )
        for check in running:
            if check.check_date and check.check_date >= cutoff:
                raise CheckAlreadyRunning(website_id)
            check.status = CheckStatus.FAILED
            check.completed_at = datetime.utcnow()
            check.error_message = "Abandoned: run did not complete"
            logger.warning("Expired stale backlink check {} for website {}", check.id, website_id)
        if running:
            self.session.commit()

    def _mark_failed(self, check_id: int, exc: Exception):
        check = self.session.get(BacklinkCheck, check_id)
        check.status = CheckStatus.FAILED
        check.completed_at = datetime.utcnow()
        check.error_message = str(exc) or exc.__class__.__name__
        self.session.commit()
        if isinstance(exc, BacklinkEngineError):
            logger.error("Backlink check {} failed: {}", check_id, exc)
        else:
            logger.exception("Backlink check {} failed unexpectedly", check_id)

    @staticmethod
    def _link_key(website: Website, link: ObservedLink):
        """(referring_url, target_url) as stored; a missing target means the homepage."""
        target_url = (link.target_url or "").strip() or default_target_url(website.domain)
        return link.referring_url.strip(), target_url

    def _upsert_link(
        self, website: Website, check: BacklinkCheck, link: ObservedLink, key, now: datetime
    ) -> bool:
        """Insert or refresh one observed link. Returns True when it is new."""
        referring_url, target_url = key
        link_type = "dofollow" if link.is_dofollow else "nofollow"

        row = (
            self.session.query(Backlink)
            .filter(
                Backlink.website_id == website.id,
                Backlink.referring_url == referring_url,
                Backlink.target_url == target_url,
            )
            .one_or_none()
        )
        if row is not None:
            row.last_seen = now
            row.status = BacklinkStatus.ACTIVE
            row.anchor_text = link.anchor_text
            row.is_dofollow = link.is_dofollow
            row.link_type = link_type
            if link.authority is not None:
                row.domain_authority = link.authority
            if link.page_authority is not None:
                row.page_authority = link.page_authority
            row.data_source = check.data_source
            row.check_id = check.id
            return False

        self.session.add(Backlink(
            website_id=website.id,
            check_id=check.id,
            referring_url=referring_url,
            referring_domain=extract_domain(referring_url),
            target_url=target_url,
            anchor_text=link.anchor_text,
            is_dofollow=link.is_dofollow,
            link_type=link_type,
            domain_authority=link.authority,
            page_authority=link.page_authority,
            data_source=check.data_source,
            status=BacklinkStatus.ACTIVE,
            first_seen=now,
            last_seen=now,
        ))
        return True

    def _reconcile(self, website: Website, check: BacklinkCheck, snapshot: List[ObservedLink]) -> CheckResult:
        now = datetime.utcnow()
        new_count = 0
        updated_count = 0
        seen = set()

        # Phase 1: per-link upserts
        for link in snapshot:
            if not link.referring_url or not link.referring_url.strip():
                continue
            key = self._link_key(website, link)
            if key in seen:
                continue
            seen.add(key)
            if self._upsert_link(website, check, link, key, now):
                new_count += 1
            else:
                updated_count += 1
            # Keeps later lookups of the same key inside this run consistent
            self.session.flush()

        self.session.flush()

        # Phase 2: single reconciliation pass over everything not touched by this run
        lost_count = (
            self.session.query(Backlink)
            .filter(
                Backlink.website_id == website.id,
                Backlink.status == BacklinkStatus.ACTIVE,
                or_(Backlink.check_id != check.id, Backlink.check_id.is_(None)),
            )
            .update({Backlink.status: BacklinkStatus.LOST}, synchronize_session="fetch")
        )

        self._write_summary(check, new_count, lost_count)
        return CheckResult(
            check_id=check.id,
            new_backlinks=new_count,
            updated_backlinks=updated_count,
            lost_backlinks=lost_count,
            total_active=check.total_backlinks,
            referring_domains=check.total_referring_domains,
        )

    def _write_summary(self, check: BacklinkCheck, new_count: int, lost_count: int):
        active = (
            self.session.query(Backlink)
            .filter(Backlink.website_id == check.website_id, Backlink.status == BacklinkStatus.ACTIVE)
            .all()
        )
        rollup = link_rollup(active)

        check.total_backlinks = rollup["total"]
        check.total_referring_domains = rollup["referring_domains"]
        check.dofollow_count = rollup["dofollow"]
        check.nofollow_count = rollup["nofollow"]
        check.new_backlinks_count = new_count
        check.lost_backlinks_count = lost_count
        check.avg_domain_authority = rollup["average_domain_authority"]
        check.top_referring_domains = rollup["top_referring_domains"]
        check.anchor_distribution = rollup["top_anchors"]
        check.status = CheckStatus.COMPLETED
        check.completed_at = datetime.utcnow()
