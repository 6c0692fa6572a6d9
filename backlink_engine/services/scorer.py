"""
Opportunity Scorer: difficulty estimate and composite 0-100 score.

The composite score deliberately keeps authority in two places (directly,
and through difficulty). Changing that would reorder existing rankings.
"""

from typing import List, Optional

from loguru import logger

from ..utils.helpers import clamp
from .candidate import Candidate

DEFAULT_AUTHORITY_FOR_DIFFICULTY = 50
DEFAULT_RELEVANCE = 70
DEFAULT_SPAM = 5


def difficulty_from_authority(authority: Optional[float]) -> int:
    """Map domain authority to an outreach difficulty in [10, 95].

    Weak sites are floored at 10; strong sites get a small achievability
    discount and are capped at 95.
    """
    a = DEFAULT_AUTHORITY_FOR_DIFFICULTY if authority is None else clamp(authority, 0, 100)
    if a < 20:
        difficulty = max(a - 5, 10)
    elif a < 50:
        difficulty = a
    elif a < 70:
        difficulty = a - 5
    else:
        difficulty = min(a - 5, 95)
    return int(round(difficulty))


def score_opportunity(
    authority: Optional[float],
    relevance: Optional[float],
    difficulty: float,
    spam: Optional[float],
) -> float:
    """Composite opportunity score, rounded to one decimal.

    Each term is capped so no single factor saturates the total:
    authority (30%), relevance (40%), ease (20%), cleanliness (10%).
    """
    a = 0 if authority is None else authority
    r = DEFAULT_RELEVANCE if relevance is None else relevance
    s = DEFAULT_SPAM if spam is None else spam

    authority_term = min(a / 60 * 30, 30)
    ease_term = max(30 - difficulty * 0.2, 0)
    clean_term = max(10 - s, 0)

    score = 0.30 * authority_term + 0.40 * r + 0.20 * ease_term + 0.10 * clean_term
    return round(score, 1)


class OpportunityScorer:
    """Attach difficulty and composite score to candidates."""

    def score(self, candidate: Candidate) -> Candidate:
        candidate.difficulty_score = difficulty_from_authority(candidate.domain_authority)
        candidate.opportunity_score = score_opportunity(
            candidate.domain_authority,
            candidate.relevance_score,
            candidate.difficulty_score,
            candidate.spam_score,
        )
        return candidate

    def score_all(self, candidates: List[Candidate]) -> List[Candidate]:
        """Score every candidate and return them by score, best first."""
        scored = [self.score(c) for c in candidates]
        scored.sort(key=lambda c: c.opportunity_score, reverse=True)
        logger.debug("Scored {} candidates", len(scored))
        return scored
