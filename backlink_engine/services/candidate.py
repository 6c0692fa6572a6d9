"""In-memory opportunity candidates flowing through the discovery pipeline."""

from dataclasses import dataclass, field
from typing import Optional

from ..models.opportunity import OpportunityType, DataSource


@dataclass
class Candidate:
    """A raw or scored opportunity before it is persisted."""
    source_domain: str
    source_url: str
    opportunity_type: OpportunityType
    relevance_score: float
    domain_authority: Optional[int] = None
    page_authority: Optional[int] = None
    spam_score: Optional[int] = None
    data_source: DataSource = DataSource.REAL
    contact_info: Optional[str] = None
    keyword: Optional[str] = None
    via: Optional[str] = None  # ranking site whose referring domains produced this
    difficulty_score: Optional[int] = None
    opportunity_score: Optional[float] = None
    extra: dict = field(default_factory=dict)

    @property
    def is_scored(self) -> bool:
        return self.difficulty_score is not None and self.opportunity_score is not None

    def to_dict(self) -> dict:
        return {
            "source_domain": self.source_domain,
            "source_url": self.source_url,
            "opportunity_type": self.opportunity_type.value,
            "relevance_score": self.relevance_score,
            "domain_authority": self.domain_authority,
            "page_authority": self.page_authority,
            "spam_score": self.spam_score,
            "data_source": self.data_source.value,
            "contact_info": self.contact_info,
            "keyword": self.keyword,
            "via": self.via,
            "difficulty_score": self.difficulty_score,
            "opportunity_score": self.opportunity_score,
        }
