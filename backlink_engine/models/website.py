"""Website model: the target site that owns every other record."""

from datetime import datetime
from typing import List

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship

from ..database import Base


class Website(Base):
    """A target website whose backlink profile is being built and monitored."""

    __tablename__ = "websites"

    id = Column(Integer, primary_key=True, autoincrement=True)

    domain = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))

    # Comma-separated seed keywords for discovery
    target_keywords = Column(Text)

    # Saved achievability band
    min_authority = Column(Integer, default=10)
    max_authority = Column(Integer, default=60)
    min_difficulty = Column(Integer, default=20)
    max_difficulty = Column(Integer, default=70)
    exclude_edu_gov = Column(Boolean, default=False)
    exclude_news_sites = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    opportunities = relationship("Opportunity", back_populates="website", cascade="all, delete-orphan")
    campaigns = relationship("Campaign", back_populates="website", cascade="all, delete-orphan")
    backlinks = relationship("Backlink", back_populates="website", cascade="all, delete-orphan")
    checks = relationship("BacklinkCheck", back_populates="website", cascade="all, delete-orphan")
    acquired_backlinks = relationship("AcquiredBacklink", back_populates="website", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Website(id={self.id}, domain='{self.domain}')>"

    @property
    def keywords_list(self) -> List[str]:
        """Get target keywords as a list."""
        if not self.target_keywords:
            return []
        return [kw.strip() for kw in self.target_keywords.split(",") if kw.strip()]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "domain": self.domain,
            "name": self.name,
            "target_keywords": self.keywords_list,
            "min_authority": self.min_authority,
            "max_authority": self.max_authority,
            "min_difficulty": self.min_difficulty,
            "max_difficulty": self.max_difficulty,
            "exclude_edu_gov": self.exclude_edu_gov,
            "exclude_news_sites": self.exclude_news_sites,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
