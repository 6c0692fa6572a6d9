"""Collapse discovery candidates to one record per source domain."""

from typing import Iterable, List, Optional, Tuple

from loguru import logger

from ..services.candidate import Candidate
from .helpers import extract_domain


class OpportunityDeduplicator:
    """
    First-seen-wins deduplication keyed by normalized source domain.

    Order is preserved, so running it on its own output changes nothing.
    Domains passed as ``excluded`` (the target site, for instance) are
    dropped outright.
    """

    def __init__(self, excluded: Optional[Iterable[str]] = None):
        self._excluded = {self._normalize_domain(d) for d in (excluded or []) if d}
        self._seen: set = set()

    @staticmethod
    def _normalize_domain(domain: str) -> str:
        return extract_domain(domain)

    def is_duplicate(self, candidate: Candidate) -> Tuple[bool, str]:
        """Check a candidate against everything seen so far."""
        domain = self._normalize_domain(candidate.source_domain)
        if not domain:
            return (True, "empty_domain")
        if domain in self._excluded:
            return (True, "excluded_domain")
        if domain in self._seen:
            return (True, "domain_match")
        return (False, "")

    def add(self, candidate: Candidate):
        """Add a candidate's domain to the seen index."""
        self._seen.add(self._normalize_domain(candidate.source_domain))

    def deduplicate_list(
        self, candidates: List[Candidate]
    ) -> Tuple[List[Candidate], List[Tuple[Candidate, str]]]:
        """
        Deduplicate candidates against each other and the excluded set.

        Returns:
            Tuple of (unique_candidates, duplicates_with_reasons)
        """
        unique = []
        duplicates = []

        for candidate in candidates:
            is_dup, reason = self.is_duplicate(candidate)
            if is_dup:
                duplicates.append((candidate, reason))
                logger.debug("Duplicate candidate {} ({})", candidate.source_domain, reason)
            else:
                candidate.source_domain = self._normalize_domain(candidate.source_domain)
                unique.append(candidate)
                self.add(candidate)

        logger.info(
            "Deduplication: {} unique, {} duplicates from {} total",
            len(unique), len(duplicates), len(candidates)
        )
        return unique, duplicates


def deduplicate(candidates: List[Candidate], excluded: Optional[Iterable[str]] = None) -> List[Candidate]:
    """Return one candidate per source domain, first seen wins."""
    unique, _ = OpportunityDeduplicator(excluded).deduplicate_list(candidates)
    return unique
