"""Tests for achievability bands and the filter."""

import pytest

from backlink_engine.exceptions import ValidationError
from backlink_engine.models.opportunity import OpportunityType
from backlink_engine.models.website import Website
from backlink_engine.services.achievability import AchievabilityFilter, Band
from backlink_engine.services.candidate import Candidate
from backlink_engine.services.scorer import OpportunityScorer


def _scored(domain, authority, spam=5):
    candidate = Candidate(
        source_domain=domain,
        source_url=f"https://{domain}",
        opportunity_type=OpportunityType.GUEST_POST,
        relevance_score=80.0,
        domain_authority=authority,
        spam_score=spam,
    )
    return OpportunityScorer().score(candidate)


class TestBand:
    """Test suite for Band validation and presets."""

    def test_defaults(self):
        """Test the default band is 10-60 authority, 20-70 difficulty."""
        band = Band()
        assert band.to_dict() == {
            "min_authority": 10, "max_authority": 60,
            "min_difficulty": 20, "max_difficulty": 70,
        }

    @pytest.mark.parametrize("kwargs", [
        {"min_authority": 50, "max_authority": 50},
        {"min_authority": 60, "max_authority": 40},
        {"min_difficulty": 70, "max_difficulty": 20},
        {"max_authority": 101},
        {"min_difficulty": -1},
    ])
    def test_rejects_malformed_band(self, kwargs):
        """Test max <= min and out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            Band(**kwargs)

    def test_presets(self):
        """Test named presets resolve to their ranges."""
        startup = Band.preset("startup")
        assert (startup.min_authority, startup.max_authority) == (10, 40)
        assert (startup.min_difficulty, startup.max_difficulty) == (10, 50)
        established = Band.preset("established")
        assert (established.min_authority, established.max_authority) == (50, 80)

    def test_unknown_preset(self):
        """Test an unknown preset name is a validation error."""
        with pytest.raises(ValidationError):
            Band.preset("moonshot")

    def test_from_website_fills_missing_values(self):
        """Test unsaved band values fall back to defaults."""
        website = Website(domain="example.com", min_authority=30, max_authority=None)
        band = Band.from_website(website)
        assert band.min_authority == 30
        assert band.max_authority == 60


class TestAchievabilityFilter:
    """Test suite for AchievabilityFilter."""

    def test_spam_ceiling_is_hard(self):
        """Test spam >= 30 is dropped even inside the band."""
        result = AchievabilityFilter().apply([_scored("clean.com", 35, spam=29), _scored("spammy.com", 35, spam=30)])
        assert [c.source_domain for c in result] == ["clean.com"]

    def test_band_and_ordering(self):
        """Test in-band candidates sorted by difficulty, then authority descending."""
        candidates = [
            _scored("a.com", 45),
            _scored("b.com", 25),
            _scored("c.com", 90),  # outside authority band
            _scored("d.com", 5),   # outside authority band
            _scored("e.com", 50),  # difficulty 45, ties with a.com
        ]
        filter_ = AchievabilityFilter(Band())
        result = filter_.apply(candidates)

        assert [c.source_domain for c in result] == ["b.com", "e.com", "a.com"]
        assert filter_.used_fallback is False

    def test_fallback_when_band_too_strict(self):
        """Test a band matching nothing yields the spam-filtered fallback set."""
        candidates = [_scored(f"site{i}.com", 15 + i * 3) for i in range(15)]
        candidates.append(_scored("spam.com", 20, spam=80))
        filter_ = AchievabilityFilter(Band(min_authority=70, max_authority=100))

        result = filter_.apply(candidates)

        assert 0 < len(result) <= 10
        assert filter_.used_fallback is True
        assert all(c.spam_score < 30 for c in result)
        difficulties = [c.difficulty_score for c in result]
        assert difficulties == sorted(difficulties)

    def test_never_starves_with_one_clean_candidate(self):
        """Test one spam-free candidate always survives, whatever the band."""
        candidates = [_scored("only.com", 55, spam=10), _scored("bad.com", 55, spam=95)]
        result = AchievabilityFilter(Band(min_authority=0, max_authority=1, min_difficulty=98, max_difficulty=99)).apply(candidates)
        assert [c.source_domain for c in result] == ["only.com"]

    def test_all_spam_returns_empty(self):
        """Test nothing comes back when every candidate is spam."""
        assert AchievabilityFilter().apply([_scored("x.com", 40, spam=50)]) == []

    def test_exclusions(self):
        """Test .edu/.gov and news exclusions apply before the band."""
        candidates = [
            _scored("college.edu", 40),
            _scored("agency.gov", 40),
            _scored("techcrunch.com", 40),
            _scored("blog.com", 40),
        ]
        result = AchievabilityFilter(exclude_edu_gov=True, exclude_news_sites=True).apply(candidates)
        assert [c.source_domain for c in result] == ["blog.com"]

    def test_exclusions_honoured_in_fallback(self):
        """Test excluded domains never reappear through the fallback path."""
        candidates = [_scored("college.edu", 40), _scored("blog.com", 40)]
        filter_ = AchievabilityFilter(Band(min_authority=80, max_authority=90), exclude_edu_gov=True)
        assert [c.source_domain for c in filter_.apply(candidates)] == ["blog.com"]
