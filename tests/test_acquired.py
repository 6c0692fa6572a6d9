"""Tests for acquired backlink bookkeeping and verification."""

from unittest.mock import MagicMock

import pytest

from backlink_engine.exceptions import InvalidStatusTransition, ValidationError
from backlink_engine.models.acquired import AcquiredBacklink, VerificationCheck
from backlink_engine.models.activity import ActivityLog, ActivityType
from backlink_engine.models.opportunity import Opportunity, OpportunityStatus
from backlink_engine.models.website import Website
from backlink_engine.services.acquired import AcquiredBacklinkService
from backlink_engine.services.health import VerificationResult


class TestAcquiredBacklinkService:
    """Test suite for AcquiredBacklinkService."""

    @pytest.fixture
    def sleep(self):
        return MagicMock()

    @pytest.fixture
    def service(self, session, verifier, settings, sleep):
        return AcquiredBacklinkService(session, verifier=verifier, settings=settings, sleep=sleep)

    @pytest.fixture
    def opportunity(self, session, website):
        opp = Opportunity(
            website_id=website.id,
            source_domain="blog.com",
            source_url="https://blog.com/write-for-us",
            domain_authority=48,
            status=OpportunityStatus.CONTACTED,
        )
        session.add(opp)
        session.flush()
        return opp

    def test_add_secures_opportunity(self, service, session, website, opportunity, verifier):
        """Test recording a link verifies it and secures its opportunity."""
        backlink, result = service.add(
            website.id, "https://blog.com/post", anchor_text="notary", opportunity_id=opportunity.id
        )

        assert result.is_live
        assert backlink.is_active is True
        assert backlink.referring_domain == "blog.com"
        assert backlink.domain_authority == 48
        assert backlink.last_checked is not None
        assert opportunity.status == OpportunityStatus.SECURED
        verifier.verify.assert_called_once_with("https://blog.com/post", "notary", "example.com")
        assert session.query(VerificationCheck).count() == 1
        acquired_logs = session.query(ActivityLog).filter(ActivityLog.activity_type == ActivityType.BACKLINK_ACQUIRED)
        assert acquired_logs.count() == 1

    def test_add_without_opportunity(self, service, website):
        """Test a standalone link keeps the caller's authority."""
        backlink, _ = service.add(website.id, "https://news.site/story", domain_authority=70)
        assert backlink.opportunity_id is None
        assert backlink.domain_authority == 70

    def test_terminal_opportunity_rejected_before_write(self, service, session, website, opportunity, verifier):
        """Test a rejected opportunity cannot be secured and nothing is stored."""
        opportunity.status = OpportunityStatus.REJECTED
        session.flush()

        with pytest.raises(InvalidStatusTransition):
            service.add(website.id, "https://blog.com/post", opportunity_id=opportunity.id)

        verifier.verify.assert_not_called()
        assert session.query(AcquiredBacklink).count() == 0

    @pytest.mark.parametrize("url", ["", "blog.com/post", "ftp://blog.com/file"])
    def test_invalid_url(self, service, website, url):
        """Test non-HTTP URLs are rejected."""
        with pytest.raises(ValidationError):
            service.add(website.id, url)

    def test_authority_range(self, service, website):
        """Test authority outside 0..100 is rejected."""
        with pytest.raises(ValidationError):
            service.add(website.id, "https://blog.com/post", domain_authority=140)

    def test_opportunity_of_other_website(self, service, session, opportunity):
        """Test an opportunity must belong to the same website."""
        other = Website(domain="other.com")
        session.add(other)
        session.flush()
        with pytest.raises(ValidationError):
            service.add(other.id, "https://blog.com/post", opportunity_id=opportunity.id)

    def test_verify_unreachable(self, service, session, website, verifier):
        """Test an unreachable page flips the link inactive without a check row."""
        backlink, _ = service.add(website.id, "https://blog.com/post")
        verifier.verify.return_value = VerificationResult(is_live=False, error="timed out")

        result = service.verify(backlink.id)

        assert not result.is_live
        assert backlink.is_active is False
        assert session.query(VerificationCheck).count() == 1

    def test_verify_unknown(self, service):
        """Test verifying a missing record raises."""
        with pytest.raises(ValidationError):
            service.verify(404)

    def test_verify_all_paces_requests(self, service, website, sleep, settings):
        """Test every link is checked with a pause between pages."""
        for i in range(3):
            service.add(website.id, f"https://blog{i}.com/post")

        results = service.verify_all(website.id)

        assert len(results) == 3
        assert all(r["is_live"] for r in results)
        assert sleep.call_count == 2
        sleep.assert_called_with(settings.verify_delay_seconds)
