"""
Acquired backlinks: record, verify and re-verify links we have earned.
"""

import time
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from loguru import logger
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..exceptions import ValidationError, InvalidStatusTransition
from ..models.acquired import AcquiredBacklink, VerificationCheck
from ..models.activity import ActivityType, log_activity
from ..models.opportunity import OpportunityStatus, can_transition
from ..utils.helpers import extract_domain
from .health import BacklinkVerifier, VerificationResult
from .opportunity_store import OpportunityStore


class AcquiredBacklinkService:
    """Bookkeeping and verification for acquired backlinks."""

    def __init__(
        self,
        session: Session,
        verifier: Optional[BacklinkVerifier] = None,
        settings: Optional[Settings] = None,
        sleep=time.sleep,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.verifier = verifier or BacklinkVerifier(self.settings)
        self.store = OpportunityStore(session)
        self._sleep = sleep

    def get(self, acquired_id: int) -> AcquiredBacklink:
        backlink = self.session.get(AcquiredBacklink, acquired_id) if acquired_id is not None else None
        if backlink is None:
            raise ValidationError(f"Acquired backlink {acquired_id} not found")
        return backlink

    def list_acquired(self, website_id: int) -> List[AcquiredBacklink]:
        self.store.get_website(website_id)
        return (
            self.session.query(AcquiredBacklink)
            .filter(AcquiredBacklink.website_id == website_id)
            .order_by(AcquiredBacklink.acquired_date.desc(), AcquiredBacklink.id.desc())
            .all()
        )

    def _record_check(self, backlink: AcquiredBacklink, result: VerificationResult, anchor_text=None):
        # Only checks that reached the server carry information worth keeping
        if result.status_code is not None:
            self.session.add(VerificationCheck(
                acquired_backlink_id=backlink.id,
                is_live=result.is_live,
                status_code=result.status_code,
                anchor_text=anchor_text,
                error=result.error,
                check_date=result.checked_at,
            ))
        backlink.is_active = result.is_live
        backlink.last_checked = result.checked_at

    def add(
        self,
        website_id: int,
        backlink_url: str,
        anchor_text: Optional[str] = None,
        opportunity_id: Optional[int] = None,
        domain_authority: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Tuple[AcquiredBacklink, VerificationResult]:
        """Record and verify an acquired backlink; secures the linked opportunity."""
        website = self.store.get_website(website_id)
        if not backlink_url:
            raise ValidationError("Backlink URL is required")
        parsed = urlparse(backlink_url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid backlink URL '{backlink_url}'")
        if domain_authority is not None and not 0 <= domain_authority <= 100:
            raise ValidationError("domain_authority must be between 0 and 100")

        opportunity = None
        if opportunity_id is not None:
            opportunity = self.store.get(opportunity_id)
            if opportunity.website_id != website.id:
                raise ValidationError("Opportunity belongs to a different website")
            if not can_transition(opportunity.status, OpportunityStatus.SECURED):
                raise InvalidStatusTransition(opportunity.status, OpportunityStatus.SECURED)
            if domain_authority is None:
                domain_authority = opportunity.domain_authority

        referring_domain = extract_domain(backlink_url)
        logger.info("Adding acquired backlink from {} for {}", referring_domain, website.domain)
        result = self.verifier.verify(backlink_url.strip(), anchor_text, website.domain)

        backlink = AcquiredBacklink(
            website_id=website.id,
            opportunity_id=opportunity.id if opportunity else None,
            backlink_url=backlink_url.strip(),
            referring_domain=referring_domain,
            anchor_text=anchor_text,
            domain_authority=domain_authority,
            notes=notes,
            verified_date=result.checked_at,
        )
        self.session.add(backlink)
        self.session.flush()
        self._record_check(backlink, result, anchor_text)

        if opportunity is not None:
            self.store.transition(opportunity.id, OpportunityStatus.SECURED, notes=f"Backlink acquired: {backlink.backlink_url}")
            log_activity(
                self.session,
                ActivityType.BACKLINK_ACQUIRED,
                f"Acquired backlink {backlink.backlink_url}",
                opportunity_id=opportunity.id,
                website_id=website.id,
            )

        self.session.flush()
        logger.info("Acquired backlink {} added (active: {})", backlink.id, backlink.is_active)
        return backlink, result

    def verify(self, acquired_id: int) -> VerificationResult:
        backlink = self.get(acquired_id)
        result = self.verifier.verify(backlink.backlink_url, backlink.anchor_text, backlink.website.domain)
        self._record_check(backlink, result, backlink.anchor_text)
        self.session.flush()
        return result

    def verify_all(self, website_id: int) -> List[dict]:
        """Re-verify every acquired backlink of a website, pausing between pages."""
        backlinks = self.list_acquired(website_id)
        logger.info("Checking {} acquired backlinks for website {}", len(backlinks), website_id)

        results = []
        for index, backlink in enumerate(backlinks):
            if index:
                self._sleep(self.settings.verify_delay_seconds)
            result = self.verifier.verify(backlink.backlink_url, backlink.anchor_text, backlink.website.domain)
            self._record_check(backlink, result, backlink.anchor_text)
            results.append({
                "id": backlink.id,
                "url": backlink.backlink_url,
                "is_live": result.is_live,
                "status_code": result.status_code,
                "error": result.error,
                "checked_at": result.checked_at.isoformat(),
            })

        self.session.flush()
        return results
