"""Unit tests for the snapshot store and change detector.

Covers:
- Warm-up loads the baseline without emitting changes
- New jobs, completions, new bids and accepted bids
- Idempotence across identical polls
- Bid fetch failures isolated per job
- Unreachable marketplace leaves the store untouched
"""

from pathlib import Path

import pytest

from market_monitor.domain.models import BidAccepted, JobCompleted, NewBid, NewJob
from market_monitor.tracker import ChangeDetector, SnapshotStore
from tests.helpers import FakeMarketplace, load_fixture_marketplace, make_bid, make_job

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def market():
    return FakeMarketplace()


@pytest.fixture
def store():
    return SnapshotStore()


@pytest.fixture
def detector(market, store):
    return ChangeDetector(market, store)


def kinds(result):
    return [change.kind for change in result.changes]


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_upsert_replaces_by_identity(self, store):
        store.upsert_job(make_job("j1", title="First"))
        store.upsert_job(make_job("j1", title="Second"))

        assert store.job_count == 1
        assert store.get_job("j1").title == "Second"

    def test_bids_tracked_separately(self, store):
        store.upsert_bid(make_bid("b1"))

        assert store.has_bid("b1")
        assert not store.has_bid("b2")
        assert store.get_bid("b2") is None
        assert store.bid_count == 1

    def test_summary_reports_counts(self, store):
        store.upsert_job(make_job("j1"))
        store.upsert_job(make_job("j2"))
        store.upsert_bid(make_bid("b1", job_id="j1"))

        summary = store.summary()

        assert summary.job_count == 2
        assert summary.bid_count == 1
        assert summary.last_update == store.last_update

    def test_unloaded_bids_tracked_per_job(self, store):
        store.mark_bids_unloaded("j2", 3)
        store.mark_bids_unloaded("j1", 0)

        assert store.unloaded_job_ids == ["j1", "j2"]

        store.mark_bids_loaded("j1")

        assert not store.bids_unloaded("j1")
        assert store.bids_unloaded("j2")


class TestWarmUp:
    """Tests for ChangeDetector.warm_up."""

    def test_loads_fixture_without_changes(self, store):
        market = load_fixture_marketplace(FIXTURES / "marketplace.yaml")
        detector = ChangeDetector(market, store)

        result = detector.warm_up()

        assert result.ok
        assert result.job_count == 2
        assert result.bid_count == 3
        assert detector.detect().changes == []

    def test_unreachable_marketplace_reports_fault(self, market, store, detector):
        market.fail_jobs = True

        result = detector.warm_up()

        assert not result.ok
        assert "503" in result.fault
        assert store.job_count == 0

    def test_bid_failure_recorded_per_job(self, market, store, detector):
        market.jobs = [make_job("j1", bid_count=1), make_job("j2", bid_count=1)]
        market.bids = {"j1": [make_bid("b1", job_id="j1")], "j2": [make_bid("b2", job_id="j2")]}
        market.fail_bids_for = {"j1"}

        result = detector.warm_up()

        assert result.ok
        assert result.failed_job_ids == ["j1"]
        assert store.job_count == 2
        assert store.has_bid("b2")
        assert not store.has_bid("b1")
        assert store.unloaded_job_ids == ["j1"]

    def test_missed_bids_loaded_as_baseline_later(self, market, store, detector):
        market.jobs = [make_job("j1", bid_count=2)]
        market.bids = {"j1": [make_bid("b1", job_id="j1"), make_bid("b2", job_id="j1")]}
        market.fail_bids_for = {"j1"}
        detector.warm_up()

        market.fail_bids_for = set()
        market.add_bid(make_bid("b3", job_id="j1"))
        result = detector.detect()

        assert [(c.kind, c.bid.bid_id) for c in result.changes] == [("new_bid", "b3")]
        assert store.has_bid("b1") and store.has_bid("b2")
        assert store.unloaded_job_ids == []

    def test_missed_bids_loaded_without_count_change(self, market, store, detector):
        market.jobs = [make_job("j1", bid_count=1)]
        market.bids = {"j1": [make_bid("b1", job_id="j1")]}
        market.fail_bids_for = {"j1"}
        detector.warm_up()

        market.fail_bids_for = set()
        result = detector.detect()

        assert result.changes == []
        assert store.has_bid("b1")
        assert not store.bids_unloaded("j1")

    def test_baseline_uses_oldest_bids(self, market, store, detector):
        older = make_bid("b-old", job_id="j1", created_at="2026-01-01T00:00:00Z")
        newer = make_bid("b-new", job_id="j1", created_at="2026-01-02T00:00:00Z")
        market.jobs = [make_job("j1", bid_count=1)]
        market.fail_bids_for = {"j1"}
        detector.warm_up()

        market.fail_bids_for = set()
        market.jobs = [make_job("j1", bid_count=2)]
        market.bids = {"j1": [newer, older]}
        result = detector.detect()

        assert [c.bid.bid_id for c in result.changes] == ["b-new"]

    def test_backfill_retried_while_bids_unavailable(self, market, store, detector):
        market.jobs = [make_job("j1", bid_count=1)]
        market.bids = {"j1": [make_bid("b1", job_id="j1")]}
        market.fail_bids_for = {"j1"}
        detector.warm_up()

        result = detector.detect()

        assert result.failed_job_ids == ["j1"]
        assert store.bids_unloaded("j1")

        market.fail_bids_for = set()
        assert detector.detect().changes == []
        assert store.has_bid("b1")

    def test_bids_arriving_during_failed_backfill_still_reported(self, market, detector):
        market.jobs = [make_job("j1", bid_count=1)]
        market.bids = {"j1": [make_bid("b1", job_id="j1")]}
        market.fail_bids_for = {"j1"}
        detector.warm_up()

        market.add_bid(make_bid("b2", job_id="j1"))
        detector.detect()

        market.fail_bids_for = set()
        result = detector.detect()

        assert [c.bid.bid_id for c in result.changes] == ["b2"]


class TestDetectJobs:
    """Job-level transitions."""

    def test_first_sighting_emits_new_job(self, market, detector):
        market.jobs = [make_job("j1"), make_job("j2")]

        result = detector.detect()

        assert kinds(result) == ["new_job", "new_job"]
        assert [c.job.job_id for c in result.changes] == ["j1", "j2"]
        assert result.jobs_seen == 2

    def test_identical_poll_is_idempotent(self, market, detector):
        market.jobs = [make_job("j1")]
        detector.detect()

        assert detector.detect().changes == []

    def test_new_job_never_reports_its_existing_bids(self, market, detector):
        market.jobs = [make_job("j1", bid_count=3)]
        market.bids = {"j1": [make_bid(f"b{i}", job_id="j1") for i in range(3)]}

        result = detector.detect()

        assert kinds(result) == ["new_job"]
        assert market.bid_calls == []

    def test_open_to_completed_fires_once(self, market, detector):
        market.jobs = [make_job("j1")]
        detector.detect()

        market.set_job(make_job("j1", status="completed"))
        first = detector.detect()
        second = detector.detect()

        assert len(first.changes) == 1
        assert isinstance(first.changes[0], JobCompleted)
        assert second.changes == []

    @pytest.mark.parametrize("status", ["in_progress", "cancelled"])
    def test_other_status_changes_are_silent(self, market, store, detector, status):
        market.jobs = [make_job("j1")]
        detector.detect()

        market.set_job(make_job("j1", status=status))
        result = detector.detect()

        assert result.changes == []
        assert store.get_job("j1").status.value == status

    def test_vanished_jobs_stay_in_store(self, market, store, detector):
        market.jobs = [make_job("j1"), make_job("j2")]
        detector.detect()

        market.jobs = [make_job("j2")]
        detector.detect()

        assert store.get_job("j1") is not None
        assert store.job_count == 2


class TestDetectBids:
    """Bid-level transitions."""

    @pytest.fixture
    def seeded(self, market, detector):
        market.jobs = [make_job("j1", bid_count=1)]
        market.bids = {"j1": [make_bid("b0", job_id="j1")]}
        detector.warm_up()
        return market

    def test_k_new_bids_emit_k_events(self, seeded, detector):
        seeded.add_bid(make_bid("b1", job_id="j1"))
        seeded.add_bid(make_bid("b2", job_id="j1"))

        result = detector.detect()

        assert kinds(result) == ["new_bid", "new_bid"]
        assert [c.bid.bid_id for c in result.changes] == ["b1", "b2"]
        assert all(c.job.job_id == "j1" for c in result.changes)
        assert all(c.job.bid_count == 3 for c in result.changes)

    def test_accepted_bid_fires_once(self, seeded, detector):
        seeded.set_bid(make_bid("b0", job_id="j1", status="accepted"))
        seeded.add_bid(make_bid("b1", job_id="j1"))

        result = detector.detect()

        accepted = [c for c in result.changes if isinstance(c, BidAccepted)]
        assert len(accepted) == 1
        assert accepted[0].bid.bid_id == "b0"
        assert any(isinstance(c, NewBid) for c in result.changes)

    @pytest.mark.parametrize("status", ["rejected", "withdrawn"])
    def test_other_bid_status_changes_are_absorbed(self, seeded, store, detector, status):
        seeded.set_bid(make_bid("b0", job_id="j1", status=status))
        seeded.add_bid(make_bid("b1", job_id="j1"))

        result = detector.detect()

        assert kinds(result) == ["new_bid"]
        assert store.get_bid("b0").status.value == status

    def test_flat_bid_count_skips_fetch(self, seeded, store, detector):
        seeded.set_bid(make_bid("b0", job_id="j1", status="accepted"))
        seeded.bid_calls.clear()

        result = detector.detect()

        assert result.changes == []
        assert seeded.bid_calls == []
        assert store.get_bid("b0").status.value == "pending"

    def test_decreasing_bid_count_skips_fetch(self, seeded, detector):
        seeded.set_job(make_job("j1", bid_count=0))
        seeded.bid_calls.clear()

        assert detector.detect().changes == []
        assert seeded.bid_calls == []

    def test_same_cycle_completion_and_bid(self, seeded, detector):
        seeded.add_bid(make_bid("b1", job_id="j1"))
        seeded.set_job(make_job("j1", bid_count=2, status="completed"))

        result = detector.detect()

        assert kinds(result) == ["job_completed", "new_bid"]


class TestDetectFailures:
    """Degraded cycles."""

    def test_unreachable_marketplace_leaves_store_unchanged(self, market, store, detector):
        market.jobs = [make_job("j1")]
        detector.detect()
        before = store.summary()

        market.fail_jobs = True
        market.jobs = [make_job("j1"), make_job("j2")]
        result = detector.detect()

        assert result.changes == []
        assert result.unreachable
        assert result.degraded
        assert store.summary() == before

    def test_bid_fetch_failure_is_isolated(self, market, store, detector):
        market.jobs = [make_job("j1"), make_job("j2")]
        detector.detect()

        market.add_bid(make_bid("b1", job_id="j1"))
        market.add_bid(make_bid("b2", job_id="j2"))
        market.fail_bids_for = {"j1"}
        result = detector.detect()

        assert [c.bid.bid_id for c in result.changes] == ["b2"]
        assert result.failed_job_ids == ["j1"]
        assert result.degraded and not result.unreachable

    def test_failed_job_bids_not_retried_until_count_grows(self, market, detector):
        # the job's new bid_count is stored even though its bids were skipped
        market.jobs = [make_job("j1")]
        detector.detect()
        market.add_bid(make_bid("b1", job_id="j1"))
        market.fail_bids_for = {"j1"}
        detector.detect()

        market.fail_bids_for = set()
        assert detector.detect().changes == []

        market.add_bid(make_bid("b2", job_id="j1"))
        result = detector.detect()
        assert [c.bid.bid_id for c in result.changes] == ["b1", "b2"]

    def test_new_job_change_carries_fetched_job(self, market, detector):
        job = make_job("j1", title="Build a bridge")
        market.jobs = [job]

        change = detector.detect().changes[0]

        assert isinstance(change, NewJob)
        assert change.job == job
