"""
Authority Estimator: domain authority and spam estimates.

Backed by an Authority Provider when one is configured and reachable;
otherwise a deterministic, domain-name based heuristic is used so the
same domain always gets the same estimate.
"""

import re
from typing import Dict, Optional

from loguru import logger

from ..config import KNOWN_DOMAIN_AUTHORITY, SPAM_DOMAIN_PATTERNS, SUSPICIOUS_TLDS
from ..exceptions import ProviderUnavailable
from ..providers.base import AuthorityProvider, AuthorityEstimate
from ..utils.helpers import extract_domain, stable_hash, tld_of, clamp

HEURISTIC = "heuristic"
REAL = "real"


def known_authority(domain: str) -> Optional[int]:
    """Fixed authority for well-known domains, including their subdomains."""
    labels = domain.split(".")
    for i in range(len(labels) - 1):
        parent = ".".join(labels[i:])
        if parent in KNOWN_DOMAIN_AUTHORITY:
            return KNOWN_DOMAIN_AUTHORITY[parent]
    return None


def heuristic_authority(domain: str) -> int:
    """Approximate authority from the shape of the domain name (10..90)."""
    known = known_authority(domain)
    if known is not None:
        return known

    score = 30
    tld = tld_of(domain)
    if tld in (".edu", ".gov"):
        score += 15
    elif tld in (".org", ".com"):
        score += 5
    if tld in SUSPICIOUS_TLDS:
        score -= 10

    # Short brandable names tend to be older, stronger sites
    name_length = len(domain.split(".")[0])
    if name_length <= 6:
        score += 10
    elif name_length <= 10:
        score += 5
    elif name_length > 20:
        score -= 5

    jitter = stable_hash(domain) % 11 - 5
    return int(clamp(score + jitter, 10, 90))


def heuristic_spam(domain: str) -> int:
    """Approximate spam risk (0..100, lower is better)."""
    if known_authority(domain) is not None:
        return 1

    spam = 5
    if any(re.search(pattern, domain) for pattern in SPAM_DOMAIN_PATTERNS):
        spam += 35
    if tld_of(domain) in SUSPICIOUS_TLDS:
        spam += 15

    digit_ratio = sum(c.isdigit() for c in domain) / max(len(domain), 1)
    if digit_ratio > 0.3:
        spam += 15

    hyphens = domain.count("-")
    if hyphens > 1:
        spam += min((hyphens - 1) * 5, 15)

    return int(clamp(spam, 0, 100))


def page_authority_for(domain_authority: Optional[int]) -> Optional[int]:
    """Page authority when the provider reports none."""
    if domain_authority is None:
        return None
    return max(domain_authority - 10, 0)


class AuthorityEstimator:
    """Provider-first authority lookups with a heuristic fallback and a cache."""

    def __init__(self, provider: Optional[AuthorityProvider] = None):
        self.provider = provider
        self._cache: Dict[str, AuthorityEstimate] = {}

    def estimate(self, domain: str) -> AuthorityEstimate:
        domain = extract_domain(domain)
        if domain in self._cache:
            return self._cache[domain]

        estimate = None
        if self.provider is not None:
            try:
                estimate = self.provider.authority_of(domain)
            except ProviderUnavailable as exc:
                logger.warning("Authority lookup for {} failed, using heuristic: {}", domain, exc)

        if estimate is None or estimate.authority is None:
            spam = estimate.spam if estimate is not None and estimate.spam is not None else heuristic_spam(domain)
            estimate = AuthorityEstimate(
                authority=heuristic_authority(domain),
                spam=spam,
                source=HEURISTIC,
            )
        elif estimate.spam is None:
            estimate = AuthorityEstimate(
                authority=int(clamp(estimate.authority, 0, 100)),
                spam=heuristic_spam(domain),
                source=REAL,
            )
        else:
            estimate = AuthorityEstimate(
                authority=int(clamp(estimate.authority, 0, 100)),
                spam=int(clamp(estimate.spam, 0, 100)),
                source=REAL,
            )

        self._cache[domain] = estimate
        return estimate

    def clear_cache(self):
        self._cache.clear()
