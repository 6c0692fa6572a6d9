"""Database models for the backlink engine."""

from .website import Website
from .opportunity import (
    Opportunity, Campaign, OpportunityType, OpportunityStatus, DataSource,
    TERMINAL_STATUSES, can_transition,
)
from .backlink import Backlink, BacklinkCheck, BacklinkStatus, CheckStatus
from .acquired import AcquiredBacklink, VerificationCheck
from .outreach import OutreachMessage, MessageType, MessageStatus
from .activity import ActivityLog, ActivityType, log_activity

__all__ = [
    "Website",
    "Opportunity", "Campaign", "OpportunityType", "OpportunityStatus", "DataSource",
    "TERMINAL_STATUSES", "can_transition",
    "Backlink", "BacklinkCheck", "BacklinkStatus", "CheckStatus",
    "AcquiredBacklink", "VerificationCheck",
    "OutreachMessage", "MessageType", "MessageStatus",
    "ActivityLog", "ActivityType", "log_activity",
]
