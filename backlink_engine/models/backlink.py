"""Monitored backlinks and the monitoring runs that observe them."""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON, ForeignKey,
    UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from ..database import Base
from .opportunity import DataSource


class BacklinkStatus(str, Enum):
    """Whether the last completed check still observed the link."""
    ACTIVE = "active"
    LOST = "lost"


class CheckStatus(str, Enum):
    """Lifecycle of one monitoring run."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BacklinkCheck(Base):
    """One monitoring run over a website's inbound links."""

    __tablename__ = "backlink_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    website_id = Column(Integer, ForeignKey("websites.id"), nullable=False, index=True)

    check_date = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    status = Column(SQLEnum(CheckStatus), default=CheckStatus.IN_PROGRESS, index=True)
    data_source = Column(SQLEnum(DataSource), default=DataSource.REAL)

    # Summary counters
    total_backlinks = Column(Integer, default=0)
    total_referring_domains = Column(Integer, default=0)
    dofollow_count = Column(Integer, default=0)
    nofollow_count = Column(Integer, default=0)
    new_backlinks_count = Column(Integer, default=0)
    lost_backlinks_count = Column(Integer, default=0)
    avg_domain_authority = Column(Float)

    # Distributions
    top_referring_domains = Column(JSON)  # [{"domain": ..., "count": ...}]
    anchor_distribution = Column(JSON)  # [{"anchor": ..., "count": ...}]

    error_message = Column(Text)

    # Relationships
    website = relationship("Website", back_populates="checks")
    backlinks = relationship("Backlink", back_populates="check")

    __table_args__ = (
        Index("idx_backlink_checks_date", "check_date"),
    )

    def __repr__(self):
        return f"<BacklinkCheck(id={self.id}, website_id={self.website_id}, status={self.status})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "website_id": self.website_id,
            "check_date": self.check_date.isoformat() if self.check_date else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "status": self.status.value if self.status else None,
            "data_source": self.data_source.value if self.data_source else None,
            "total_backlinks": self.total_backlinks,
            "total_referring_domains": self.total_referring_domains,
            "dofollow_count": self.dofollow_count,
            "nofollow_count": self.nofollow_count,
            "new_backlinks_count": self.new_backlinks_count,
            "lost_backlinks_count": self.lost_backlinks_count,
            "avg_domain_authority": self.avg_domain_authority,
            "top_referring_domains": self.top_referring_domains or [],
            "anchor_distribution": self.anchor_distribution or [],
            "error_message": self.error_message,
        }


class Backlink(Base):
    """One inbound link instance observed by monitoring."""

    __tablename__ = "backlinks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    website_id = Column(Integer, ForeignKey("websites.id"), nullable=False, index=True)
    # Last check that observed this link
    check_id = Column(Integer, ForeignKey("backlink_checks.id"), index=True)

    # Source
    referring_url = Column(String(1000), nullable=False)
    referring_domain = Column(String(255), nullable=False, index=True)

    # Target
    target_url = Column(String(1000), nullable=False)

    # Link attributes
    anchor_text = Column(Text)
    is_dofollow = Column(Boolean, default=True)
    link_type = Column(String(50))  # dofollow, nofollow
    domain_authority = Column(Integer)
    page_authority = Column(Integer)
    data_source = Column(SQLEnum(DataSource), default=DataSource.REAL)

    status = Column(SQLEnum(BacklinkStatus), default=BacklinkStatus.ACTIVE, index=True)

    # Timestamps
    first_seen = Column(DateTime, default=datetime.utcnow)
    last_seen = Column(DateTime, default=datetime.utcnow)

    # Relationships
    website = relationship("Website", back_populates="backlinks")
    check = relationship("BacklinkCheck", back_populates="backlinks")

    __table_args__ = (
        UniqueConstraint("website_id", "referring_url", "target_url", name="uq_backlink_website_urls"),
    )

    def __repr__(self):
        return f"<Backlink(id={self.id}, from='{self.referring_domain}', status={self.status})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "website_id": self.website_id,
            "check_id": self.check_id,
            "referring_url": self.referring_url,
            "referring_domain": self.referring_domain,
            "target_url": self.target_url,
            "anchor_text": self.anchor_text,
            "is_dofollow": self.is_dofollow,
            "link_type": self.link_type,
            "domain_authority": self.domain_authority,
            "page_authority": self.page_authority,
            "data_source": self.data_source.value if self.data_source else None,
            "status": self.status.value if self.status else None,
            "first_seen": self.first_seen.isoformat() if self.first_seen else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }
