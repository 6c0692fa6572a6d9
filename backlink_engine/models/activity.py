"""Activity log model for tracking actions on opportunities."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..database import Base


class ActivityType(str, Enum):
    """Type of activity/action."""
    DISCOVERED = "discovered"
    STATUS_CHANGED = "status_changed"
    CAMPAIGN_ASSIGNED = "campaign_assigned"
    OUTREACH_RECORDED = "outreach_recorded"
    BACKLINK_ACQUIRED = "backlink_acquired"


class ActivityLog(Base):
    """Activity log for opportunity lifecycle events."""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to opportunity (optional - some activities are website-wide)
    opportunity_id = Column(Integer, ForeignKey("backlink_opportunities.id"), index=True)
    website_id = Column(Integer, ForeignKey("websites.id"), index=True)

    # Activity info
    activity_type = Column(SQLEnum(ActivityType), nullable=False, index=True)
    description = Column(Text)
    details = Column(Text)  # free-form notes

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    opportunity = relationship("Opportunity", back_populates="activity_logs")

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, type={self.activity_type}, opportunity_id={self.opportunity_id})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "opportunity_id": self.opportunity_id,
            "website_id": self.website_id,
            "activity_type": self.activity_type.value if self.activity_type else None,
            "description": self.description,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def log_activity(
    session,
    activity_type: ActivityType,
    description: str,
    opportunity_id: int = None,
    website_id: int = None,
    details: str = None
) -> ActivityLog:
    """Helper function to log an activity."""
    log = ActivityLog(
        opportunity_id=opportunity_id,
        website_id=website_id,
        activity_type=activity_type,
        description=description,
        details=details
    )
    session.add(log)
    return log
