"""Tests for monitoring runs and snapshot reconciliation."""

from datetime import datetime, timedelta

import pytest

from backlink_engine.exceptions import (
    CheckAlreadyRunning, ProviderUnavailable, SnapshotRunFailure, WebsiteNotFound,
)
from backlink_engine.models.backlink import Backlink, BacklinkCheck, BacklinkStatus, CheckStatus
from backlink_engine.services.snapshot_differ import SnapshotDiffer

from fakes import FakeSnapshotSource, link

A = link("https://a.com/post", anchor="notary", authority=30)
B = link("https://b.com/post", anchor="notary", authority=50)
C = link("https://c.org/links", anchor="apostille", dofollow=False, authority=None)
D = link("https://d.net/blog", anchor="notary", authority=70)


def _by_url(session, website):
    rows = session.query(Backlink).filter(Backlink.website_id == website.id).all()
    return {row.referring_url: row for row in rows}


class TestSnapshotDiffer:
    """Test suite for SnapshotDiffer."""

    @pytest.fixture
    def differ_for(self, session, locks):
        def build(source=None):
            return SnapshotDiffer(session, snapshot_source=source, locks=locks, stale_after_minutes=30)
        return build

    def test_first_run_inserts_everything(self, differ_for, session, website):
        """Test the first check reports every link as new."""
        result = differ_for(FakeSnapshotSource([A, B, C])).run(website.id)

        assert result.new_backlinks == 3
        assert result.lost_backlinks == 0
        assert result.total_active == 3
        assert result.referring_domains == 3

        check = session.get(BacklinkCheck, result.check_id)
        assert check.status == CheckStatus.COMPLETED
        assert check.dofollow_count == 2
        assert check.nofollow_count == 1
        assert check.avg_domain_authority == 40.0
        assert {"anchor": "notary", "count": 2} in check.anchor_distribution

    def test_diff_between_runs(self, differ_for, session, website):
        """Test {A,B,C} then {B,C,D}: A lost, D new, B and C refreshed."""
        source = FakeSnapshotSource([A, B, C], [B, C, D])
        differ = differ_for(source)
        differ.run(website.id)
        before = _by_url(session, website)["https://b.com/post"].last_seen

        result = differ.run(website.id)
        rows = _by_url(session, website)

        assert result.new_backlinks == 1
        assert result.lost_backlinks == 1
        assert result.updated_backlinks == 2
        assert result.total_active == 3
        assert rows["https://a.com/post"].status == BacklinkStatus.LOST
        assert rows["https://d.net/blog"].status == BacklinkStatus.ACTIVE
        for url in ("https://b.com/post", "https://c.org/links"):
            assert rows[url].status == BacklinkStatus.ACTIVE
            assert rows[url].check_id == result.check_id
        assert rows["https://b.com/post"].last_seen >= before

    def test_lost_rows_are_kept(self, differ_for, session, website):
        """Test lost links stay in the table."""
        differ = differ_for(FakeSnapshotSource([A, B], []))
        differ.run(website.id)
        result = differ.run(website.id)

        assert result.lost_backlinks == 2
        assert result.total_active == 0
        assert session.query(Backlink).count() == 2

    def test_rerun_does_not_double_count(self, differ_for, website):
        """Test the same snapshot twice yields no new links the second time."""
        differ = differ_for(FakeSnapshotSource([A, B], [A, B]))
        differ.run(website.id)
        result = differ.run(website.id)
        assert result.new_backlinks == 0
        assert result.lost_backlinks == 0
        assert result.updated_backlinks == 2

    def test_lost_link_can_come_back(self, differ_for, session, website):
        """Test a lost link seen again is active and not counted as new."""
        differ = differ_for(FakeSnapshotSource([A], [], [A]))
        differ.run(website.id)
        differ.run(website.id)
        result = differ.run(website.id)

        assert result.new_backlinks == 0
        assert _by_url(session, website)["https://a.com/post"].status == BacklinkStatus.ACTIVE

    def test_duplicate_links_in_snapshot(self, differ_for, session, website):
        """Test a link repeated in one snapshot is stored once."""
        result = differ_for().run(website.id, snapshot=[A, A, B])
        assert result.new_backlinks == 2
        assert session.query(Backlink).count() == 2

    def test_missing_target_uses_site_url(self, differ_for, session, website):
        """Test links without a target URL point at the site root."""
        differ_for().run(website.id, snapshot=[link("https://x.com/", target_url=None)])
        row = session.query(Backlink).one()
        assert row.target_url == "https://example.com"
        assert row.referring_domain == "x.com"

    def test_missing_target_matches_explicit_site_url(self, differ_for, session, website):
        """Test a link listed with and without its site-root target counts once."""
        snapshot = [
            link("https://x.com/", target_url=None),
            link("https://x.com/", target_url="https://example.com"),
        ]
        result = differ_for().run(website.id, snapshot=snapshot)

        assert session.query(Backlink).count() == 1
        assert result.new_backlinks == 1
        assert result.updated_backlinks == 0

    def test_fetch_failure_marks_check_failed(self, differ_for, session, website):
        """Test a provider failure fails the check and leaves links alone."""
        differ_for().run(website.id, snapshot=[A, B])
        failing = differ_for(FakeSnapshotSource(error=ProviderUnavailable("se_ranking", "HTTP 503")))

        with pytest.raises(SnapshotRunFailure) as excinfo:
            failing.run(website.id)

        check = session.get(BacklinkCheck, excinfo.value.check_id)
        assert check.status == CheckStatus.FAILED
        assert "HTTP 503" in check.error_message
        assert all(row.status == BacklinkStatus.ACTIVE for row in _by_url(session, website).values())

    def test_reconcile_failure_rolls_back(self, differ_for, session, website, monkeypatch):
        """Test an error after the lost pass commits nothing from that run."""
        differ = differ_for()
        differ.run(website.id, snapshot=[A, B])

        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(differ, "_write_summary", boom)
        with pytest.raises(SnapshotRunFailure):
            differ.run(website.id, snapshot=[B, D])

        rows = _by_url(session, website)
        assert set(rows) == {"https://a.com/post", "https://b.com/post"}
        assert rows["https://a.com/post"].status == BacklinkStatus.ACTIVE
        statuses = [c.status for c in session.query(BacklinkCheck).order_by(BacklinkCheck.id)]
        assert statuses == [CheckStatus.COMPLETED, CheckStatus.FAILED]

    def test_no_source_configured(self, differ_for, session, website):
        """Test running without a snapshot source fails the check."""
        with pytest.raises(SnapshotRunFailure):
            differ_for().run(website.id)
        assert session.query(BacklinkCheck).one().status == CheckStatus.FAILED

    def test_unknown_website(self, differ_for, session):
        """Test an unknown website records nothing."""
        with pytest.raises(WebsiteNotFound):
            differ_for().run(999, snapshot=[A])
        assert session.query(BacklinkCheck).count() == 0

    def test_single_flight_in_process(self, differ_for, locks, website):
        """Test a second run while the website lock is held fails fast."""
        with locks.hold(website.id):
            with pytest.raises(CheckAlreadyRunning):
                differ_for().run(website.id, snapshot=[A])
        assert not locks.is_held(website.id)

    def test_single_flight_across_processes(self, differ_for, session, website):
        """Test a fresh in-progress check row blocks a new run."""
        session.add(BacklinkCheck(website_id=website.id, status=CheckStatus.IN_PROGRESS, check_date=datetime.utcnow()))
        session.commit()
        with pytest.raises(CheckAlreadyRunning):
            differ_for().run(website.id, snapshot=[A])

    def test_stale_in_progress_check_is_expired(self, differ_for, session, website):
        """Test an abandoned in-progress check is failed and the run proceeds."""
        stale = BacklinkCheck(
            website_id=website.id,
            status=CheckStatus.IN_PROGRESS,
            check_date=datetime.utcnow() - timedelta(hours=2),
        )
        session.add(stale)
        session.commit()

        result = differ_for().run(website.id, snapshot=[A])

        assert result.new_backlinks == 1
        session.refresh(stale)
        assert stale.status == CheckStatus.FAILED
        assert stale.error_message.startswith("Abandoned")
