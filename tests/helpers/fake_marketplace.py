"""In-memory marketplace for tests.

FakeMarketplace implements the JobSource protocol over plain dicts, so tests
can mutate jobs and bids between detection cycles and make chosen calls fail.
Listings can also be loaded from a YAML fixture.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from market_monitor.domain.models import Bid, Job
from market_monitor.marketplace.exceptions import MarketplaceHTTPError


def make_job(job_id: str = "job-1", **overrides: Any) -> Job:
    """Build a Job with sensible defaults."""
    data: Dict[str, Any] = {
        "job_id": job_id,
        "creator_agent_id": "creator-agent",
        "title": f"Job {job_id}",
        "description": "",
        "tags": [],
        "bid_count": 0,
        "status": "open",
        "budget_amount": None,
    }
    data.update(overrides)
    return Job.model_validate(data)


def make_bid(bid_id: str = "bid-1", job_id: str = "job-1", **overrides: Any) -> Bid:
    """Build a Bid with sensible defaults."""
    data: Dict[str, Any] = {
        "bid_id": bid_id,
        "job_id": job_id,
        "bidder_agent_id": "bidder-agent",
        "amount": "5",
        "proposal": "",
        "status": "pending",
        "eta_seconds": 3600,
    }
    data.update(overrides)
    return Bid.model_validate(data)


class FakeMarketplace:
    """Scriptable JobSource.

    Attributes:
        jobs: Current listing, in order
        bids: job_id -> bids on that job
        fail_jobs: When True, ``list_jobs`` raises
        fail_bids_for: Job ids whose ``list_bids`` raises
        bid_calls: Job ids passed to ``list_bids``, in call order
    """

    def __init__(self, jobs: Optional[List[Job]] = None, bids: Optional[Dict[str, List[Bid]]] = None):
        self.jobs: List[Job] = list(jobs or [])
        self.bids: Dict[str, List[Bid]] = {k: list(v) for k, v in (bids or {}).items()}
        self.fail_jobs = False
        self.fail_bids_for: Set[str] = set()
        self.bid_calls: List[str] = []

    def list_jobs(self) -> List[Job]:
        if self.fail_jobs:
            raise MarketplaceHTTPError("HTTP 503: Service Unavailable", status_code=503, url="fake://jobs")
        return list(self.jobs)

    def list_bids(self, job_id: str) -> List[Bid]:
        self.bid_calls.append(job_id)
        if job_id in self.fail_bids_for:
            raise MarketplaceHTTPError("HTTP 500: Internal Server Error", status_code=500, url=f"fake://{job_id}")
        return list(self.bids.get(job_id, []))

    def set_job(self, job: Job) -> None:
        """Replace the listed job with the same id, or append it."""
        for i, existing in enumerate(self.jobs):
            if existing.job_id == job.job_id:
                self.jobs[i] = job
                return
        self.jobs.append(job)

    def add_bid(self, bid: Bid) -> None:
        """Add a bid and bump the job's ``bid_count`` like the real API."""
        self.bids.setdefault(bid.job_id, []).append(bid)
        for i, job in enumerate(self.jobs):
            if job.job_id == bid.job_id:
                self.jobs[i] = job.model_copy(update={"bid_count": job.bid_count + 1})

    def set_bid(self, bid: Bid) -> None:
        """Replace a bid in place without touching ``bid_count``."""
        bids = self.bids.setdefault(bid.job_id, [])
        for i, existing in enumerate(bids):
            if existing.bid_id == bid.bid_id:
                bids[i] = bid
                return
        bids.append(bid)


def load_fixture_marketplace(fixture_path: Path) -> FakeMarketplace:
    """Build a FakeMarketplace from a YAML file with ``jobs`` and ``bids`` keys.

    Raises:
        FileNotFoundError: If the fixture file doesn't exist
    """
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture file not found: {fixture_path}")

    with open(fixture_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    jobs = [Job.model_validate(raw) for raw in data.get("jobs", [])]
    bids: Dict[str, List[Bid]] = {}
    for raw in data.get("bids", []):
        bid = Bid.model_validate(raw)
        bids.setdefault(bid.job_id, []).append(bid)
    return FakeMarketplace(jobs, bids)
