"""Opportunity and campaign models, plus the opportunity status lifecycle."""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, ForeignKey,
    UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from ..database import Base


class OpportunityType(str, Enum):
    """Kind of link placement an opportunity offers."""
    GUEST_POST = "guest_post"
    RESOURCE_PAGE = "resource_page"
    BROKEN_LINK = "broken_link"
    DIRECTORY = "directory"
    FORUM = "forum"


class OpportunityStatus(str, Enum):
    """Opportunity status in the outreach pipeline."""
    DISCOVERED = "discovered"
    CONTACTED = "contacted"
    PENDING = "pending"
    SECURED = "secured"
    REJECTED = "rejected"


class DataSource(str, Enum):
    """Whether a record is backed by provider data or by heuristics."""
    REAL = "real"
    HEURISTIC = "heuristic"


TERMINAL_STATUSES = frozenset({OpportunityStatus.SECURED, OpportunityStatus.REJECTED})

# Allowed moves; staying in the same status is always a no-op
TRANSITIONS = {
    OpportunityStatus.DISCOVERED: frozenset({
        OpportunityStatus.CONTACTED,
        OpportunityStatus.PENDING,
        OpportunityStatus.SECURED,
        OpportunityStatus.REJECTED,
    }),
    OpportunityStatus.CONTACTED: frozenset({
        OpportunityStatus.PENDING,
        OpportunityStatus.SECURED,
        OpportunityStatus.REJECTED,
    }),
    OpportunityStatus.PENDING: frozenset({
        OpportunityStatus.CONTACTED,
        OpportunityStatus.SECURED,
        OpportunityStatus.REJECTED,
    }),
    OpportunityStatus.SECURED: frozenset(),
    OpportunityStatus.REJECTED: frozenset(),
}


def can_transition(current: OpportunityStatus, target: OpportunityStatus) -> bool:
    """Check whether an opportunity may move from ``current`` to ``target``."""
    current = OpportunityStatus(current)
    target = OpportunityStatus(target)
    if current == target:
        return True
    return target in TRANSITIONS[current]


class Campaign(Base):
    """A named grouping of opportunities with a target type and count."""

    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    website_id = Column(Integer, ForeignKey("websites.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    target_type = Column(SQLEnum(OpportunityType))
    target_count = Column(Integer, default=10)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    website = relationship("Website", back_populates="campaigns")
    opportunities = relationship("Opportunity", back_populates="campaign")

    def __repr__(self):
        return f"<Campaign(id={self.id}, name='{self.name}', website_id={self.website_id})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "website_id": self.website_id,
            "name": self.name,
            "target_type": self.target_type.value if self.target_type else None,
            "target_count": self.target_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Opportunity(Base):
    """A candidate, not-yet-acquired backlink source for one website."""

    __tablename__ = "backlink_opportunities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    website_id = Column(Integer, ForeignKey("websites.id"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), index=True)

    # Source
    source_url = Column(String(1000))
    source_domain = Column(String(255), nullable=False)

    # Measurements
    domain_authority = Column(Integer)
    page_authority = Column(Integer)
    spam_score = Column(Integer)
    relevance_score = Column(Float)
    difficulty_score = Column(Integer)
    opportunity_score = Column(Float)

    # Classification
    opportunity_type = Column(SQLEnum(OpportunityType), index=True)
    data_source = Column(SQLEnum(DataSource), default=DataSource.REAL)
    contact_info = Column(String(255))

    # Status
    status = Column(SQLEnum(OpportunityStatus), default=OpportunityStatus.DISCOVERED, index=True)
    notes = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    website = relationship("Website", back_populates="opportunities")
    campaign = relationship("Campaign", back_populates="opportunities")
    outreach_messages = relationship("OutreachMessage", back_populates="opportunity")
    acquired_backlinks = relationship("AcquiredBacklink", back_populates="opportunity")
    activity_logs = relationship("ActivityLog", back_populates="opportunity")

    __table_args__ = (
        UniqueConstraint("website_id", "source_domain", name="uq_opportunity_website_domain"),
        Index("idx_opportunity_authority", "domain_authority"),
    )

    def __repr__(self):
        return f"<Opportunity(id={self.id}, domain='{self.source_domain}', status={self.status})>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "website_id": self.website_id,
            "campaign_id": self.campaign_id,
            "source_url": self.source_url,
            "source_domain": self.source_domain,
            "domain_authority": self.domain_authority,
            "page_authority": self.page_authority,
            "spam_score": self.spam_score,
            "relevance_score": self.relevance_score,
            "difficulty_score": self.difficulty_score,
            "opportunity_score": self.opportunity_score,
            "opportunity_type": self.opportunity_type.value if self.opportunity_type else None,
            "data_source": self.data_source.value if self.data_source else None,
            "contact_info": self.contact_info,
            "status": self.status.value if self.status else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
