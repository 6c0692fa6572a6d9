"""Tests for opportunity persistence, lifecycle and campaigns."""

import pytest

from backlink_engine.exceptions import (
    InvalidStatusTransition, OpportunityNotFound, ValidationError, WebsiteNotFound,
)
from backlink_engine.models.activity import ActivityLog, ActivityType
from backlink_engine.models.opportunity import (
    DataSource, Opportunity, OpportunityStatus, OpportunityType, can_transition,
)
from backlink_engine.models.outreach import MessageStatus
from backlink_engine.services.candidate import Candidate
from backlink_engine.services.opportunity_store import OpportunityStore
from backlink_engine.services.scorer import OpportunityScorer


def _candidate(domain, authority=40, relevance=80.0, opportunity_type=OpportunityType.GUEST_POST):
    return OpportunityScorer().score(Candidate(
        source_domain=domain,
        source_url=f"https://{domain}/write-for-us",
        opportunity_type=opportunity_type,
        relevance_score=relevance,
        domain_authority=authority,
        spam_score=3,
        data_source=DataSource.REAL,
        contact_info=f"contact@{domain}",
    ))


class TestStatusLifecycle:
    """Test suite for the transition table."""

    def test_allowed_moves(self):
        """Test the forward moves and the pending/contacted loop."""
        assert can_transition(OpportunityStatus.DISCOVERED, OpportunityStatus.CONTACTED)
        assert can_transition(OpportunityStatus.CONTACTED, OpportunityStatus.PENDING)
        assert can_transition(OpportunityStatus.PENDING, OpportunityStatus.CONTACTED)
        assert can_transition(OpportunityStatus.PENDING, OpportunityStatus.SECURED)

    def test_terminal_states(self):
        """Test nothing leaves secured or rejected."""
        for terminal in (OpportunityStatus.SECURED, OpportunityStatus.REJECTED):
            for target in OpportunityStatus:
                if target != terminal:
                    assert not can_transition(terminal, target)

    def test_no_return_to_discovered(self):
        """Test a worked opportunity cannot regress to discovered."""
        assert not can_transition(OpportunityStatus.CONTACTED, OpportunityStatus.DISCOVERED)


class TestOpportunityStore:
    """Test suite for OpportunityStore."""

    @pytest.fixture
    def store(self, session):
        return OpportunityStore(session)

    def test_upsert_inserts_in_order(self, store, website):
        """Test new candidates are inserted as discovered, in candidate order."""
        rows = store.upsert(website.id, [_candidate("b.com"), _candidate("a.com")])

        assert [r.source_domain for r in rows] == ["b.com", "a.com"]
        assert all(r.status == OpportunityStatus.DISCOVERED for r in rows)
        assert all(r.id is not None for r in rows)
        assert rows[0].data_source == DataSource.REAL

    def test_upsert_is_idempotent(self, store, session, website):
        """Test repeating an upsert refreshes rows instead of duplicating them."""
        store.upsert(website.id, [_candidate("a.com"), _candidate("b.com")])
        store.upsert(website.id, [_candidate("a.com", authority=55), _candidate("b.com")])

        assert session.query(Opportunity).count() == 2
        refreshed = store.find(website.id, "a.com")
        assert refreshed.domain_authority == 55
        discovered = session.query(ActivityLog).filter(ActivityLog.activity_type == ActivityType.DISCOVERED).count()
        assert discovered == 2

    def test_rediscovery_keeps_status_and_campaign(self, store, website):
        """Test a secured opportunity stays secured and keeps its campaign."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        campaign = store.create_campaign(website.id, "Guest posts")
        store.assign_to_campaign(row.id, campaign.id)
        store.transition(row.id, "secured")

        again = store.upsert(website.id, [_candidate("a.com", opportunity_type=OpportunityType.DIRECTORY)])[0]

        assert again.id == row.id
        assert again.status == OpportunityStatus.SECURED
        assert again.campaign_id == campaign.id
        assert again.opportunity_type == OpportunityType.DIRECTORY

    def test_transition_appends_notes_and_logs(self, store, session, website):
        """Test a transition stores notes and an activity entry."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        store.transition(row.id, OpportunityStatus.CONTACTED, notes="Emailed editor")
        store.transition(row.id, OpportunityStatus.PENDING, notes="Awaiting reply")

        assert row.status == OpportunityStatus.PENDING
        assert row.notes == "Emailed editor\nAwaiting reply"
        changes = session.query(ActivityLog).filter(ActivityLog.activity_type == ActivityType.STATUS_CHANGED).order_by(ActivityLog.id).all()
        assert [c.description for c in changes] == ["discovered -> contacted", "contacted -> pending"]

    def test_transition_out_of_terminal_rejected(self, store, website):
        """Test leaving a terminal state raises."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        store.transition(row.id, "rejected")
        with pytest.raises(InvalidStatusTransition):
            store.transition(row.id, "contacted")

    def test_transition_validation(self, store, website):
        """Test unknown statuses and opportunities raise validation errors."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        with pytest.raises(ValidationError):
            store.transition(row.id, "won")
        with pytest.raises(OpportunityNotFound):
            store.transition(9999, "contacted")

    def test_unknown_website(self, store):
        """Test lookups for a missing website raise WebsiteNotFound."""
        with pytest.raises(WebsiteNotFound):
            store.list_opportunities(424242)

    def test_list_filters_and_order(self, store, website):
        """Test status, type and difficulty filters plus ordering."""
        store.upsert(website.id, [
            _candidate("easy.com", authority=20),
            _candidate("mid.com", authority=45, opportunity_type=OpportunityType.DIRECTORY),
            _candidate("hard.com", authority=90),
        ])
        store.transition(store.find(website.id, "mid.com").id, "contacted")

        assert [o.source_domain for o in store.list_opportunities(website.id)] == ["hard.com", "mid.com", "easy.com"]
        assert [o.source_domain for o in store.list_opportunities(website.id, status="contacted")] == ["mid.com"]
        assert [o.source_domain for o in store.list_opportunities(website.id, opportunity_type="directory")] == ["mid.com"]
        assert [o.source_domain for o in store.list_opportunities(website.id, difficulty="easy")] == ["easy.com"]
        assert [o.source_domain for o in store.list_opportunities(website.id, difficulty="difficult")] == ["hard.com"]
        with pytest.raises(ValidationError):
            store.list_opportunities(website.id, difficulty="trivial")

    def test_campaign_stats(self, store, website):
        """Test counts per status and averages."""
        rows = store.upsert(website.id, [
            _candidate("a.com", authority=20, relevance=70),
            _candidate("b.com", authority=40, relevance=90),
        ])
        store.transition(rows[0].id, "contacted")

        stats = store.campaign_stats(website.id)

        assert stats["total"] == 2
        assert stats["contacted"] == 1
        assert stats["discovered"] == 1
        assert stats["secured"] == 0
        assert stats["avg_domain_authority"] == 30.0
        assert stats["avg_relevance"] == 80.0

    def test_campaign_validation(self, store, session, website):
        """Test campaigns need a name and can't span websites."""
        with pytest.raises(ValidationError):
            store.create_campaign(website.id, "  ")
        with pytest.raises(ValidationError):
            store.create_campaign(website.id, "Bad", target_count=0)

        from backlink_engine.models.website import Website
        other = Website(domain="other.com")
        session.add(other)
        session.flush()
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        foreign = store.create_campaign(other.id, "Elsewhere")
        with pytest.raises(ValidationError):
            store.assign_to_campaign(row.id, foreign.id)

    def test_record_outreach_marks_contacted(self, store, website):
        """Test a successful send moves a discovered opportunity to contacted."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        message = store.record_outreach(row.id, "Guest post idea", "Hello!")

        assert message.status == MessageStatus.SENT
        assert message.sent_date is not None
        assert row.status == OpportunityStatus.CONTACTED

    def test_failed_outreach_keeps_status(self, store, website):
        """Test a failed send leaves the opportunity untouched."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        message = store.record_outreach(row.id, "Hi", "Body", sent=False)
        assert message.status == MessageStatus.FAILED
        assert row.status == OpportunityStatus.DISCOVERED

    def test_outreach_on_secured_leaves_status(self, store, website):
        """Test outreach to a secured opportunity does not change its status."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        store.transition(row.id, "secured")
        store.record_outreach(row.id, "Thanks", "Thanks for the link", message_type="followup")
        assert row.status == OpportunityStatus.SECURED

    def test_outreach_response(self, store, website):
        """Test recording a reply marks the message replied."""
        row = store.upsert(website.id, [_candidate("a.com")])[0]
        message = store.record_outreach(row.id, "Hi", "Body")
        store.update_outreach_response(message.id, response_text="Sounds good")
        assert message.status == MessageStatus.REPLIED
        assert message.response_received is not None
