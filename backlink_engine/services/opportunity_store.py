"""
Opportunity Store: idempotent persistence and the status lifecycle.

Upserts are keyed by (website, source_domain). Rediscovery refreshes the
measurements of an existing row but never touches its campaign link or a
status a human has already moved past ``discovered``.
"""

from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import (
    ValidationError, WebsiteNotFound, OpportunityNotFound, InvalidStatusTransition,
)
from ..models.activity import ActivityType, log_activity
from ..models.opportunity import (
    Opportunity, Campaign, OpportunityStatus, OpportunityType, can_transition,
)
from ..models.outreach import OutreachMessage, MessageType, MessageStatus
from ..models.website import Website
from .candidate import Candidate

# Inclusive difficulty ranges used for list filtering
DIFFICULTY_BUCKETS = {
    "easy": (0, 35),
    "medium": (36, 65),
    "difficult": (66, 100),
}


def _parse_enum(enum_cls, value, field: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}', expected one of: {allowed}")


class OpportunityStore:
    """Persistence and state transitions for opportunities and campaigns."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_website(self, website_id: int) -> Website:
        website = self.session.get(Website, website_id) if website_id is not None else None
        if website is None:
            raise WebsiteNotFound(website_id)
        return website

    def get(self, opportunity_id: int) -> Opportunity:
        opportunity = self.session.get(Opportunity, opportunity_id) if opportunity_id is not None else None
        if opportunity is None:
            raise OpportunityNotFound(opportunity_id)
        return opportunity

    def find(self, website_id: int, source_domain: str) -> Optional[Opportunity]:
        return (
            self.session.query(Opportunity)
            .filter(Opportunity.website_id == website_id, Opportunity.source_domain == source_domain)
            .one_or_none()
        )

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    @staticmethod
    def _refresh(row: Opportunity, candidate: Candidate):
        row.source_url = candidate.source_url or row.source_url
        row.opportunity_type = candidate.opportunity_type
        row.relevance_score = candidate.relevance_score
        row.difficulty_score = candidate.difficulty_score
        row.domain_authority = candidate.domain_authority
        row.page_authority = candidate.page_authority
        row.spam_score = candidate.spam_score
        row.opportunity_score = candidate.opportunity_score
        row.data_source = candidate.data_source
        if not row.contact_info:
            row.contact_info = candidate.contact_info

    def upsert(self, website_id: int, candidates: List[Candidate]) -> List[Opportunity]:
        """Insert new candidates and refresh existing ones, in candidate order."""
        rows = []
        inserted = 0
        for candidate in candidates:
            row = self.find(website_id, candidate.source_domain)
            if row is not None:
                self._refresh(row, candidate)
                rows.append(row)
                continue

            row = Opportunity(
                website_id=website_id,
                source_domain=candidate.source_domain,
                status=OpportunityStatus.DISCOVERED,
            )
            self._refresh(row, candidate)
            try:
                with self.session.begin_nested():
                    self.session.add(row)
                    self.session.flush()
            except IntegrityError:
                # Inserted concurrently by another run; fall back to refresh
                row = self.find(website_id, candidate.source_domain)
                if row is None:
                    raise
                self._refresh(row, candidate)
            else:
                inserted += 1
                log_activity(
                    self.session,
                    ActivityType.DISCOVERED,
                    f"Discovered {candidate.source_domain}",
                    opportunity_id=row.id,
                    website_id=website_id,
                )
            rows.append(row)

        self.session.flush()
        logger.info(
            "Upserted {} opportunities for website {} ({} new)",
            len(rows), website_id, inserted
        )
        return rows

    # ------------------------------------------------------------------
    # Status lifecycle
    # ------------------------------------------------------------------

    def transition(
        self,
        opportunity_id: int,
        status,
        notes: Optional[str] = None,
    ) -> Opportunity:
        """Move an opportunity to ``status``.

        Raises:
            InvalidStatusTransition: when leaving a terminal state or taking
                a move the lifecycle does not allow.
        """
        target = _parse_enum(OpportunityStatus, status, "status")
        if target is None:
            raise ValidationError("status is required")
        opportunity = self.get(opportunity_id)
        current = opportunity.status or OpportunityStatus.DISCOVERED

        if not can_transition(current, target):
            raise InvalidStatusTransition(current, target)
        if current == target and not notes:
            return opportunity

        opportunity.status = target
        opportunity.updated_at = datetime.utcnow()
        if notes:
            opportunity.notes = f"{opportunity.notes}\n{notes}" if opportunity.notes else notes

        log_activity(
            self.session,
            ActivityType.STATUS_CHANGED,
            f"{current.value} -> {target.value}",
            opportunity_id=opportunity.id,
            website_id=opportunity.website_id,
            details=notes,
        )
        self.session.flush()
        logger.info("Opportunity {} moved {} -> {}", opportunity.id, current.value, target.value)
        return opportunity

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    def create_campaign(
        self,
        website_id: int,
        name: str,
        target_type=None,
        target_count: int = 10,
    ) -> Campaign:
        self.get_website(website_id)
        if not name or not name.strip():
            raise ValidationError("Campaign name is required")
        if target_count is None or target_count <= 0:
            raise ValidationError("target_count must be positive")

        campaign = Campaign(
            website_id=website_id,
            name=name.strip(),
            target_type=_parse_enum(OpportunityType, target_type, "target_type"),
            target_count=target_count,
        )
        self.session.add(campaign)
        self.session.flush()
        logger.info("Created campaign '{}' for website {}", campaign.name, website_id)
        return campaign

    def list_campaigns(self, website_id: int) -> List[Campaign]:
        self.get_website(website_id)
        return (
            self.session.query(Campaign)
            .filter(Campaign.website_id == website_id)
            .order_by(Campaign.created_at.desc(), Campaign.id.desc())
            .all()
        )

    def assign_to_campaign(self, opportunity_id: int, campaign_id: int) -> Opportunity:
        opportunity = self.get(opportunity_id)
        campaign = self.session.get(Campaign, campaign_id)
        if campaign is None:
            raise ValidationError(f"Campaign {campaign_id} not found")
        if campaign.website_id != opportunity.website_id:
            raise ValidationError("Campaign and opportunity belong to different websites")

        opportunity.campaign_id = campaign.id
        log_activity(
            self.session,
            ActivityType.CAMPAIGN_ASSIGNED,
            f"Assigned to campaign '{campaign.name}'",
            opportunity_id=opportunity.id,
            website_id=opportunity.website_id,
        )
        self.session.flush()
        return opportunity

    # ------------------------------------------------------------------
    # Outreach bookkeeping
    # ------------------------------------------------------------------

    def record_outreach(
        self,
        opportunity_id: int,
        subject: str,
        body: str,
        message_type="initial",
        sent: bool = True,
        external_message_id: Optional[str] = None,
    ) -> OutreachMessage:
        """Store an outreach attempt; a successful send marks the opportunity contacted."""
        opportunity = self.get(opportunity_id)
        if not subject or not body:
            raise ValidationError("Subject and body are required")

        message = OutreachMessage(
            website_id=opportunity.website_id,
            opportunity_id=opportunity.id,
            message_type=_parse_enum(MessageType, message_type, "message_type"),
            subject=subject,
            body=body,
            status=MessageStatus.SENT if sent else MessageStatus.FAILED,
            external_message_id=external_message_id,
            sent_date=datetime.utcnow() if sent else None,
        )
        self.session.add(message)
        log_activity(
            self.session,
            ActivityType.OUTREACH_RECORDED,
            f"Outreach {'sent' if sent else 'failed'}: {subject}",
            opportunity_id=opportunity.id,
            website_id=opportunity.website_id,
        )

        if sent:
            if can_transition(opportunity.status, OpportunityStatus.CONTACTED):
                self.transition(opportunity.id, OpportunityStatus.CONTACTED)
            else:
                logger.info(
                    "Opportunity {} is {}, leaving status unchanged after outreach",
                    opportunity.id, opportunity.status.value
                )
        else:
            logger.warning("Outreach to {} failed to send", opportunity.source_domain)

        self.session.flush()
        return message

    def update_outreach_response(
        self,
        message_id: int,
        status=None,
        response_text: Optional[str] = None,
    ) -> OutreachMessage:
        message = self.session.get(OutreachMessage, message_id)
        if message is None:
            raise ValidationError(f"Outreach message {message_id} not found")

        new_status = _parse_enum(MessageStatus, status, "status")
        if new_status is not None:
            message.status = new_status
        if response_text is not None:
            message.response_text = response_text
            message.response_received = datetime.utcnow()
            if new_status is None:
                message.status = MessageStatus.REPLIED
        self.session.flush()
        return message

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list_opportunities(
        self,
        website_id: int,
        status=None,
        opportunity_type=None,
        difficulty: Optional[str] = None,
        order: str = "authority",
    ) -> List[Opportunity]:
        self.get_website(website_id)
        query = self.session.query(Opportunity).filter(Opportunity.website_id == website_id)

        status = _parse_enum(OpportunityStatus, status, "status")
        if status is not None:
            query = query.filter(Opportunity.status == status)

        opportunity_type = _parse_enum(OpportunityType, opportunity_type, "type")
        if opportunity_type is not None:
            query = query.filter(Opportunity.opportunity_type == opportunity_type)

        if difficulty is not None:
            if difficulty not in DIFFICULTY_BUCKETS:
                raise ValidationError(
                    f"Invalid difficulty '{difficulty}', expected one of: {', '.join(DIFFICULTY_BUCKETS)}"
                )
            low, high = DIFFICULTY_BUCKETS[difficulty]
            query = query.filter(Opportunity.difficulty_score.between(low, high))

        if order == "score":
            query = query.order_by(Opportunity.opportunity_score.desc(), Opportunity.id)
        else:
            query = query.order_by(Opportunity.domain_authority.desc(), Opportunity.id)
        return query.all()

    def campaign_stats(self, website_id: int) -> dict:
        """Counts per status plus average authority and relevance."""
        self.get_website(website_id)
        counts = dict(
            self.session.query(Opportunity.status, func.count(Opportunity.id))
            .filter(Opportunity.website_id == website_id)
            .group_by(Opportunity.status)
            .all()
        )
        avg_authority, avg_relevance = (
            self.session.query(
                func.avg(Opportunity.domain_authority),
                func.avg(Opportunity.relevance_score),
            )
            .filter(Opportunity.website_id == website_id)
            .one()
        )

        stats = {"total": sum(counts.values())}
        for status in OpportunityStatus:
            stats[status.value] = counts.get(status, 0)
        stats["avg_domain_authority"] = round(avg_authority, 1) if avg_authority is not None else None
        stats["avg_relevance"] = round(avg_relevance, 1) if avg_relevance is not None else None
        return stats
