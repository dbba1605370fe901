"""In-memory snapshot of the last observed marketplace state."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from market_monitor.domain.models import Bid, Job
from market_monitor.utils.timestamps import utc_now


@dataclass(frozen=True)
class StateSummary:
    """Counts reported by the ``/status`` command."""

    job_count: int
    bid_count: int
    last_update: datetime


class SnapshotStore:
    """Last-seen copy of every job and bid, keyed by identity.

    Entries are only ever added or replaced. A job that disappears from the
    marketplace listing stays here until the process restarts.

    The store is written by exactly one dispatch cycle at a time; the dispatch
    loop owns it and guarantees cycles never overlap.

    Jobs whose bids could not be read during warm-up are kept in a pending
    map, with their bid count at that time, until a later cycle loads them
    as baseline.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._bids: Dict[str, Bid] = {}
        self._unloaded_bids: Dict[str, int] = {}
        self.last_update: datetime = utc_now()

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def upsert_job(self, job: Job) -> None:
        self._jobs[job.job_id] = job

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        return self._bids.get(bid_id)

    def has_bid(self, bid_id: str) -> bool:
        return bid_id in self._bids

    def upsert_bid(self, bid: Bid) -> None:
        self._bids[bid.bid_id] = bid

    def mark_bids_unloaded(self, job_id: str, baseline_count: int) -> None:
        """Remember that ``baseline_count`` existing bids on the job were never read."""
        self._unloaded_bids[job_id] = baseline_count

    def mark_bids_loaded(self, job_id: str) -> None:
        self._unloaded_bids.pop(job_id, None)

    def bids_unloaded(self, job_id: str) -> bool:
        return job_id in self._unloaded_bids

    def unloaded_baseline(self, job_id: str) -> Optional[int]:
        return self._unloaded_bids.get(job_id)

    @property
    def unloaded_job_ids(self) -> List[str]:
        return sorted(self._unloaded_bids)

    def mark_updated(self, when: Optional[datetime] = None) -> None:
        self.last_update = when or utc_now()

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    @property
    def bid_count(self) -> int:
        return len(self._bids)

    def summary(self) -> StateSummary:
        return StateSummary(
            job_count=self.job_count,
            bid_count=self.bid_count,
            last_update=self.last_update,
        )
