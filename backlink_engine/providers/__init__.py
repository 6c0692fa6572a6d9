"""External search, authority and snapshot providers."""

from .base import (
    SearchProvider, AuthorityProvider, SnapshotSource,
    SearchResult, AuthorityEstimate, ReferringDomain, ObservedLink,
)
from .serper import SerperSearchProvider
from .seranking import SERankingProvider

__all__ = [
    "SearchProvider", "AuthorityProvider", "SnapshotSource",
    "SearchResult", "AuthorityEstimate", "ReferringDomain", "ObservedLink",
    "SerperSearchProvider", "SERankingProvider",
]
