"""
Source Aggregator: turns keywords into raw, unscored opportunity candidates.

For each keyword the Search Provider supplies the top ranking sites; for
each of the first few ranking sites the Authority Provider supplies that
site's referring domains, which become candidates. Failures degrade one
step at a time:

    referring domains  ->  the ranking site itself  ->  well-known domains

and are logged and handled per keyword / per site, never aborting the run.
"""

from typing import List, Optional, Tuple

from loguru import logger

from ..config import (
    TOP_RANKING_SITES, HEURISTIC_FALLBACK_DOMAINS, OPPORTUNITY_TYPE_KEYWORDS,
    RELEVANCE_RANKING_SITE, RELEVANCE_HEURISTIC, RELEVANCE_REFERRING_DOMAIN,
    RELEVANCE_KEYWORD_BONUS,
)
from ..exceptions import ProviderUnavailable
from ..models.opportunity import OpportunityType, DataSource
from ..providers.base import SearchProvider, AuthorityProvider, ReferringDomain
from ..utils.helpers import extract_domain, stable_hash
from .authority import AuthorityEstimator, heuristic_spam, page_authority_for, HEURISTIC
from .candidate import Candidate

# Referring domains taken from each ranking site, most-linked first
REFERRING_DOMAINS_PER_SITE = 20

_UNTYPED_CHOICES = [
    OpportunityType.RESOURCE_PAGE,
    OpportunityType.GUEST_POST,
    OpportunityType.DIRECTORY,
]


def infer_opportunity_type(url: str) -> OpportunityType:
    """Guess the placement type from URL wording.

    URLs without a telling fragment get a stable pseudo-random type so that
    rediscovering the same source never flips its type.
    """
    lowered = (url or "").lower()
    for type_value, fragments in OPPORTUNITY_TYPE_KEYWORDS:
        if any(fragment in lowered for fragment in fragments):
            return OpportunityType(type_value)
    domain = extract_domain(url) or lowered
    return _UNTYPED_CHOICES[stable_hash(domain) % len(_UNTYPED_CHOICES)]


def keyword_relevance(domain: str, keyword: Optional[str]) -> float:
    """Relevance of a referring domain, with a bonus for keyword overlap."""
    relevance = RELEVANCE_REFERRING_DOMAIN
    if keyword:
        tokens = [t for t in keyword.lower().split() if len(t) >= 3]
        if any(token in domain for token in tokens):
            relevance += RELEVANCE_KEYWORD_BONUS
    return float(relevance)


class SourceAggregator:
    """Collect raw candidates for a target domain from search and authority data."""

    def __init__(
        self,
        search_provider: Optional[SearchProvider] = None,
        authority_provider: Optional[AuthorityProvider] = None,
        estimator: Optional[AuthorityEstimator] = None,
        top_sites: int = TOP_RANKING_SITES,
    ):
        self.search_provider = search_provider
        self.authority_provider = authority_provider
        self.estimator = estimator or AuthorityEstimator(authority_provider)
        self._heuristic = AuthorityEstimator(provider=None)
        self.top_sites = top_sites

    def gather(self, target_domain: str, keywords: List[str]) -> List[Candidate]:
        """Return raw candidates for every keyword, possibly with repeats."""
        target = extract_domain(target_domain)
        candidates: List[Candidate] = []

        for keyword in keywords:
            sites = self._ranking_sites(keyword, target)
            if sites is None:
                candidates.extend(self.heuristic_candidates(target, keyword))
                continue
            for site_domain, site_url in sites:
                candidates.extend(self._candidates_for_site(site_domain, site_url, target, keyword))

        if not candidates:
            logger.warning(
                "No provider data for {} ({} keywords), using heuristic sources",
                target, len(keywords)
            )
            candidates = self.heuristic_candidates(target, keywords[0] if keywords else None)

        logger.info("Gathered {} raw candidates for {}", len(candidates), target)
        return candidates

    def _ranking_sites(self, keyword: str, target: str) -> Optional[List[Tuple[str, str]]]:
        """Distinct top ranking (domain, url) pairs for a keyword, target excluded.

        Returns None when the search itself failed.
        """
        if self.search_provider is None:
            logger.debug("No search provider configured, skipping '{}'", keyword)
            return []
        try:
            results = self.search_provider.search(keyword)
        except ProviderUnavailable as exc:
            logger.warning("Search for '{}' failed, using heuristic sources: {}", keyword, exc)
            return None

        sites: List[Tuple[str, str]] = []
        seen = set()
        for result in results:
            domain = extract_domain(result.url)
            if not domain or domain == target or domain in seen:
                continue
            seen.add(domain)
            sites.append((domain, result.url))
            if len(sites) >= self.top_sites:
                break
        return sites

    def _candidates_for_site(
        self, site_domain: str, site_url: str, target: str, keyword: str
    ) -> List[Candidate]:
        referring: List[ReferringDomain] = []
        provider_down = self.authority_provider is None
        if not provider_down:
            try:
                referring = self.authority_provider.referring_domains_of(site_domain)
            except ProviderUnavailable as exc:
                logger.warning("Referring domains for {} unavailable: {}", site_domain, exc)
                provider_down = True

        emitted = []
        for ref in referring:
            domain = extract_domain(ref.domain)
            if not domain or domain in (site_domain, target):
                continue
            emitted.append(self._referring_candidate(domain, ref, keyword, site_domain))
            if len(emitted) >= REFERRING_DOMAINS_PER_SITE:
                break

        if emitted:
            return emitted
        return [self._ranking_site_candidate(site_domain, site_url, keyword, lookup=not provider_down)]

    def _referring_candidate(
        self, domain: str, ref: ReferringDomain, keyword: str, via: str
    ) -> Candidate:
        source_url = f"https://{domain}"
        if ref.authority is not None:
            authority = ref.authority
            spam = heuristic_spam(domain)
            data_source = DataSource.REAL
        else:
            estimate = self._local_estimate(domain)
            authority, spam = estimate.authority, estimate.spam
            data_source = DataSource.HEURISTIC
        return Candidate(
            source_domain=domain,
            source_url=source_url,
            opportunity_type=infer_opportunity_type(source_url),
            relevance_score=keyword_relevance(domain, keyword),
            domain_authority=authority,
            page_authority=page_authority_for(authority),
            spam_score=spam,
            data_source=data_source,
            contact_info=f"contact@{domain}",
            keyword=keyword,
            via=via,
            extra={"link_count": ref.link_count},
        )

    def _ranking_site_candidate(
        self, domain: str, url: str, keyword: str, lookup: bool = True
    ) -> Candidate:
        estimate = self.estimator.estimate(domain) if lookup else self._local_estimate(domain)
        return Candidate(
            source_domain=domain,
            source_url=url,
            opportunity_type=infer_opportunity_type(url),
            relevance_score=float(RELEVANCE_RANKING_SITE),
            domain_authority=estimate.authority,
            page_authority=page_authority_for(estimate.authority),
            spam_score=estimate.spam,
            data_source=DataSource.HEURISTIC if estimate.source == HEURISTIC else DataSource.REAL,
            contact_info=f"contact@{domain}",
            keyword=keyword,
        )

    def _local_estimate(self, domain: str):
        # Heuristic only: no extra provider round trip per referring domain
        return self._heuristic.estimate(domain)

    def heuristic_candidates(self, target: str, keyword: Optional[str] = None) -> List[Candidate]:
        """Well-known high-authority domains, tagged as heuristic."""
        candidates = []
        for domain in HEURISTIC_FALLBACK_DOMAINS:
            if domain == target:
                continue
            estimate = self._local_estimate(domain)
            source_url = f"https://{domain}"
            candidates.append(Candidate(
                source_domain=domain,
                source_url=source_url,
                opportunity_type=infer_opportunity_type(source_url),
                relevance_score=float(RELEVANCE_HEURISTIC),
                domain_authority=estimate.authority,
                page_authority=page_authority_for(estimate.authority),
                spam_score=estimate.spam,
                data_source=DataSource.HEURISTIC,
                contact_info=f"contact@{domain}",
                keyword=keyword,
            ))
        return candidates
