"""Acquired backlinks and their point-in-time verification checks."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class AcquiredBacklink(Base):
    """A backlink the operator pursued and wants verified over time."""

    __tablename__ = "acquired_backlinks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    website_id = Column(Integer, ForeignKey("websites.id"), nullable=False, index=True)
    opportunity_id = Column(Integer, ForeignKey("backlink_opportunities.id"), index=True)

    backlink_url = Column(String(1000), nullable=False)
    referring_domain = Column(String(255), index=True)
    anchor_text = Column(Text)
    domain_authority = Column(Integer)

    is_active = Column(Boolean, default=False)
    notes = Column(Text)

    # Timestamps
    acquired_date = Column(DateTime, default=datetime.utcnow)
    verified_date = Column(DateTime)
    last_checked = Column(DateTime)

    # Relationships
    website = relationship("Website", back_populates="acquired_backlinks")
    opportunity = relationship("Opportunity", back_populates="acquired_backlinks")
    verification_checks = relationship(
        "VerificationCheck",
        back_populates="acquired_backlink",
        cascade="all, delete-orphan",
        order_by="VerificationCheck.check_date",
    )

    def __repr__(self):
        return f"<AcquiredBacklink(id={self.id}, url='{self.backlink_url}', active={self.is_active})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "website_id": self.website_id,
            "opportunity_id": self.opportunity_id,
            "backlink_url": self.backlink_url,
            "referring_domain": self.referring_domain,
            "anchor_text": self.anchor_text,
            "domain_authority": self.domain_authority,
            "is_active": self.is_active,
            "notes": self.notes,
            "acquired_date": self.acquired_date.isoformat() if self.acquired_date else None,
            "verified_date": self.verified_date.isoformat() if self.verified_date else None,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
        }


class VerificationCheck(Base):
    """One liveness check of an acquired backlink. Append-only."""

    __tablename__ = "verification_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    acquired_backlink_id = Column(Integer, ForeignKey("acquired_backlinks.id"), nullable=False, index=True)

    is_live = Column(Boolean, default=False)
    status_code = Column(Integer)
    anchor_text = Column(Text)
    error = Column(Text)
    check_date = Column(DateTime, default=datetime.utcnow, index=True)

    acquired_backlink = relationship("AcquiredBacklink", back_populates="verification_checks")

    def __repr__(self):
        return f"<VerificationCheck(id={self.id}, live={self.is_live}, status={self.status_code})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "acquired_backlink_id": self.acquired_backlink_id,
            "is_live": self.is_live,
            "status_code": self.status_code,
            "anchor_text": self.anchor_text,
            "error": self.error,
            "check_date": self.check_date.isoformat() if self.check_date else None,
        }
