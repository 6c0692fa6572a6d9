"""
Achievability Filter: narrow scored candidates to a realistic band.

Spam at or above the hard ceiling is always dropped. If the
authority/difficulty band then leaves nothing, the band is discarded and
the easiest spam-free candidates are returned instead.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from ..config import BAND_PRESETS, FALLBACK_LIMIT, NEWS_DOMAINS, SPAM_CUTOFF
from ..exceptions import ValidationError
from .candidate import Candidate


@dataclass(frozen=True)
class Band:
    """Authority and difficulty ranges, inclusive on both ends."""
    min_authority: int = 10
    max_authority: int = 60
    min_difficulty: int = 20
    max_difficulty: int = 70

    def __post_init__(self):
        for name in ("min_authority", "max_authority", "min_difficulty", "max_difficulty"):
            value = getattr(self, name)
            if value is None or not 0 <= value <= 100:
                raise ValidationError(f"{name} must be between 0 and 100, got {value}")
        if self.max_authority <= self.min_authority:
            raise ValidationError("max_authority must be greater than min_authority")
        if self.max_difficulty <= self.min_difficulty:
            raise ValidationError("max_difficulty must be greater than min_difficulty")

    @classmethod
    def preset(cls, name: str) -> "Band":
        if name not in BAND_PRESETS:
            raise ValidationError(
                f"Unknown preset '{name}', expected one of: {', '.join(sorted(BAND_PRESETS))}"
            )
        values = BAND_PRESETS[name]
        return cls(
            min_authority=values["authority"][0],
            max_authority=values["authority"][1],
            min_difficulty=values["difficulty"][0],
            max_difficulty=values["difficulty"][1],
        )

    @classmethod
    def from_website(cls, website) -> "Band":
        default = cls()
        return cls(
            min_authority=_or(website.min_authority, default.min_authority),
            max_authority=_or(website.max_authority, default.max_authority),
            min_difficulty=_or(website.min_difficulty, default.min_difficulty),
            max_difficulty=_or(website.max_difficulty, default.max_difficulty),
        )

    def admits(self, candidate: Candidate) -> bool:
        authority = candidate.domain_authority
        difficulty = candidate.difficulty_score
        if authority is None or difficulty is None:
            return False
        return (
            self.min_authority <= authority <= self.max_authority
            and self.min_difficulty <= difficulty <= self.max_difficulty
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "min_authority": self.min_authority,
            "max_authority": self.max_authority,
            "min_difficulty": self.min_difficulty,
            "max_difficulty": self.max_difficulty,
        }


def _or(value, default):
    return default if value is None else value


def _easy_and_strong(candidate: Candidate):
    return (candidate.difficulty_score, -(candidate.domain_authority or 0))


def _is_edu_gov(domain: str) -> bool:
    return domain.endswith(".edu") or domain.endswith(".gov") or ".gov." in domain or ".edu." in domain


class AchievabilityFilter:
    """Apply the spam ceiling, optional site exclusions and the band."""

    def __init__(
        self,
        band: Optional[Band] = None,
        exclude_edu_gov: bool = False,
        exclude_news_sites: bool = False,
        fallback_limit: int = FALLBACK_LIMIT,
    ):
        self.band = band or Band()
        self.exclude_edu_gov = exclude_edu_gov
        self.exclude_news_sites = exclude_news_sites
        self.fallback_limit = fallback_limit
        self.used_fallback = False

    def _eligible(self, candidate: Candidate) -> bool:
        spam = candidate.spam_score if candidate.spam_score is not None else 0
        if spam >= SPAM_CUTOFF:
            return False
        if self.exclude_edu_gov and _is_edu_gov(candidate.source_domain):
            return False
        if self.exclude_news_sites and candidate.source_domain in NEWS_DOMAINS:
            return False
        return True

    def apply(self, candidates: List[Candidate]) -> List[Candidate]:
        """Return achievable candidates, easiest (then strongest) first."""
        eligible = [c for c in candidates if self._eligible(c)]
        in_band = [c for c in eligible if self.band.admits(c)]

        if in_band:
            self.used_fallback = False
            in_band.sort(key=_easy_and_strong)
            logger.info(
                "Achievability: {} of {} candidates inside band {}",
                len(in_band), len(candidates), self.band.to_dict()
            )
            return in_band

        self.used_fallback = bool(eligible)
        fallback = sorted(eligible, key=lambda c: c.difficulty_score if c.difficulty_score is not None else 100)
        fallback = fallback[:self.fallback_limit]
        if eligible:
            logger.info(
                "Achievability band {} matched nothing, falling back to {} spam-filtered candidates",
                self.band.to_dict(), len(fallback)
            )
        return fallback
