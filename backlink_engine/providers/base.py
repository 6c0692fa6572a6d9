"""Provider interfaces and the records they exchange with the engine.

Every provider method may raise ``ProviderUnavailable``; callers decide
how to fall back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class SearchResult:
    """One organic search result."""
    url: str
    title: str = ""
    position: Optional[int] = None


@dataclass
class AuthorityEstimate:
    """Authority and spam estimate for a domain."""
    authority: Optional[int]
    spam: Optional[int] = None
    source: str = "real"  # "real" or "heuristic"


@dataclass
class ReferringDomain:
    """A domain linking to some other domain."""
    domain: str
    authority: Optional[int] = None
    link_count: int = 1


@dataclass
class ObservedLink:
    """One inbound link seen in a backlink snapshot."""
    referring_url: str
    target_url: Optional[str] = None
    anchor_text: Optional[str] = None
    is_dofollow: bool = True
    authority: Optional[int] = None
    page_authority: Optional[int] = None


class SearchProvider(ABC):
    """Ranked organic results for a keyword."""

    name = "search"

    @abstractmethod
    def search(self, keyword: str) -> List[SearchResult]:
        ...


class AuthorityProvider(ABC):
    """Domain authority and referring-domain data."""

    name = "authority"

    @abstractmethod
    def authority_of(self, domain: str) -> AuthorityEstimate:
        ...

    @abstractmethod
    def referring_domains_of(self, domain: str) -> List[ReferringDomain]:
        ...


class SnapshotSource(ABC):
    """Point-in-time list of a domain's inbound links."""

    name = "snapshot"

    @abstractmethod
    def snapshot_for(self, domain: str) -> List[ObservedLink]:
        ...
