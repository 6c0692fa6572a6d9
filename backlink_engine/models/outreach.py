"""Outreach message records for backlink opportunities."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..database import Base


class MessageType(str, Enum):
    """Position of the message in an outreach sequence."""
    INITIAL = "initial"
    FOLLOWUP = "followup"


class MessageStatus(str, Enum):
    """Delivery and response status of an outreach message."""
    SENT = "sent"
    FAILED = "failed"
    OPENED = "opened"
    REPLIED = "replied"
    BOUNCED = "bounced"


class OutreachMessage(Base):
    """A message sent (or attempted) to the owner of an opportunity."""

    __tablename__ = "outreach_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)

    website_id = Column(Integer, ForeignKey("websites.id"), nullable=False, index=True)
    opportunity_id = Column(Integer, ForeignKey("backlink_opportunities.id"), nullable=False, index=True)

    # Message content
    message_type = Column(SQLEnum(MessageType), default=MessageType.INITIAL)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)

    # Delivery
    status = Column(SQLEnum(MessageStatus), nullable=False, index=True)
    external_message_id = Column(String(255))
    sent_date = Column(DateTime)

    # Response tracking
    response_received = Column(DateTime)
    response_text = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    opportunity = relationship("Opportunity", back_populates="outreach_messages")

    def __repr__(self):
        return f"<OutreachMessage(id={self.id}, opportunity_id={self.opportunity_id}, status={self.status})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "website_id": self.website_id,
            "opportunity_id": self.opportunity_id,
            "message_type": self.message_type.value if self.message_type else None,
            "subject": self.subject,
            "body": self.body,
            "status": self.status.value if self.status else None,
            "external_message_id": self.external_message_id,
            "sent_date": self.sent_date.isoformat() if self.sent_date else None,
            "response_received": self.response_received.isoformat() if self.response_received else None,
            "response_text": self.response_text,
        }
