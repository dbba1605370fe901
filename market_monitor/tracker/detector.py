"""Change detection between consecutive marketplace polls.

The detector compares a freshly fetched job listing against the
:class:`SnapshotStore` and emits typed state changes:

1. A job id not in the store produces ``NewJob``. Its bids are not compared
   (and never reported as ``NewBid``) on the cycle it first appears.
2. A known job whose status changed to ``completed`` produces ``JobCompleted``.
   Other status transitions are not reported.
3. A known job whose ``bid_count`` grew has its bids re-fetched. Unknown bids
   produce ``NewBid``; known bids that changed to ``accepted`` produce
   ``BidAccepted``. Any other bid status change is recorded silently.
4. Every fetched job is written back to the store.

A job whose bids could not be read during warm-up has them fetched on every
cycle until that succeeds. The bids it already counted at warm-up are stored
without events, so only bids beyond that count are reported.

Otherwise bids are only re-fetched when ``bid_count`` increases. A status
change on an existing bid while the count stays flat (or drops) goes unnoticed
until the count rises again.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from market_monitor.domain.models import (
    Bid,
    BidAccepted,
    BidStatus,
    Job,
    JobCompleted,
    JobStatus,
    NewBid,
    NewJob,
    StateChange,
)
from market_monitor.logging import get_logger
from market_monitor.logging.context import log_context
from market_monitor.marketplace.client import JobSource
from market_monitor.marketplace.exceptions import MarketplaceError
from market_monitor.utils.timestamps import utc_now

from .models import DetectionResult, WarmUpResult
from .store import SnapshotStore

logger = get_logger(__name__, component="tracker")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ChangeDetector:
    """Diffs marketplace state against the snapshot store.

    Args:
        source: Anything exposing ``list_jobs()`` and ``list_bids(job_id)``
        store: Snapshot store owned by the caller
    """

    def __init__(self, source: JobSource, store: SnapshotStore):
        self.source = source
        self.store = store

    def warm_up(self) -> WarmUpResult:
        """Load the current jobs and bids into the store without emitting changes.

        Run once before the first :meth:`detect` so existing jobs are not
        reported as new.
        """
        try:
            jobs = self.source.list_jobs()
        except MarketplaceError as e:
            logger.error(
                f"Warm-up failed, marketplace unreachable: {e}",
                extra={"event": "tracker.warm_up.failed", "error_type": type(e).__name__},
            )
            return WarmUpResult(fault=str(e))

        result = WarmUpResult()
        for job in jobs:
            self.store.upsert_job(job)
            try:
                bids = self.source.list_bids(job.job_id)
            except MarketplaceError as e:
                result.failed_job_ids.append(job.job_id)
                self.store.mark_bids_unloaded(job.job_id, job.bid_count)
                logger.warning(
                    f"Could not load bids for job {job.job_id} during warm-up: {e}",
                    extra={"event": "tracker.warm_up.bids_failed", "job_id": job.job_id},
                )
                continue
            self.store.mark_bids_loaded(job.job_id)
            for bid in bids:
                self.store.upsert_bid(bid)

        self.store.mark_updated()
        result.job_count = self.store.job_count
        result.bid_count = self.store.bid_count

        logger.info(
            f"Initialized with {result.job_count} jobs and {result.bid_count} bids",
            extra={
                "event": "tracker.warm_up.completed",
                "job_count": result.job_count,
                "bid_count": result.bid_count,
                "failed_jobs": len(result.failed_job_ids),
            },
        )
        return result

    def detect(self) -> DetectionResult:
        """Fetch the current listing and diff it against the store.

        A failure of the job listing is returned as ``fault`` with no changes
        and an unmodified store. It is never raised.
        """
        try:
            current_jobs = self.source.list_jobs()
        except MarketplaceError as e:
            logger.warning(
                f"Marketplace unreachable, skipping detection: {e}",
                extra={
                    "event": "tracker.detect.degraded",
                    "reason": "jobs_unavailable",
                    "error_type": type(e).__name__,
                },
            )
            return DetectionResult(fault=str(e))

        return self.detect_changes(current_jobs)

    def detect_changes(self, current_jobs: Iterable[Job]) -> DetectionResult:
        """Diff an already fetched job listing against the store.

        Bid listings are still fetched from the source for jobs whose bid
        count increased.
        """
        now = utc_now()
        result = DetectionResult()

        for job in current_jobs:
            result.jobs_seen += 1
            with log_context(job_id=job.job_id):
                result.changes.extend(self._diff_job(job, now, result))
            self.store.upsert_job(job)

        self.store.mark_updated(now)

        logger.info(
            f"Detected {len(result.changes)} changes across {result.jobs_seen} jobs",
            extra={
                "event": "tracker.detect.completed",
                "change_count": len(result.changes),
                "jobs_seen": result.jobs_seen,
                "failed_jobs": len(result.failed_job_ids),
            },
        )
        return result

    def _diff_job(self, job: Job, now: datetime, result: DetectionResult) -> List[StateChange]:
        previous = self.store.get_job(job.job_id)
        if previous is None:
            return [NewJob(job=job, timestamp=now)]

        changes: List[StateChange] = []
        if previous.status != job.status and job.status == JobStatus.COMPLETED:
            changes.append(JobCompleted(job=job, timestamp=now))

        baseline_count = self.store.unloaded_baseline(job.job_id)
        if baseline_count is not None:
            bids = self._fetch_bids(job, previous, result)
            if bids is not None:
                changes.extend(self._backfill_bids(job, baseline_count, bids, now))
        elif job.bid_count > previous.bid_count:
            bids = self._fetch_bids(job, previous, result)
            if bids is not None:
                changes.extend(self._diff_bids(job, bids, now))

        return changes

    def _fetch_bids(self, job: Job, previous: Job, result: DetectionResult) -> Optional[List[Bid]]:
        try:
            return self.source.list_bids(job.job_id)
        except MarketplaceError as e:
            result.failed_job_ids.append(job.job_id)
            logger.warning(
                f"Bid fetch failed for job {job.job_id}, skipping its bids this cycle: {e}",
                extra={
                    "event": "tracker.bids.fetch_failed",
                    "error_type": type(e).__name__,
                    "previous_bid_count": previous.bid_count,
                    "bid_count": job.bid_count,
                },
            )
            return None

    def _diff_bids(self, job: Job, bids: Iterable[Bid], now: datetime) -> List[StateChange]:
        changes: List[StateChange] = []
        for bid in bids:
            seen = self.store.get_bid(bid.bid_id)
            if seen is None:
                changes.append(NewBid(job=job, bid=bid, timestamp=now))
            elif seen.status != bid.status and bid.status == BidStatus.ACCEPTED:
                changes.append(BidAccepted(job=job, bid=bid, timestamp=now))
            self.store.upsert_bid(bid)
        return changes

    def _backfill_bids(self, job: Job, baseline_count: int, bids: List[Bid], now: datetime) -> List[StateChange]:
        """Load bids that warm-up missed, then diff only what arrived since.

        The oldest ``baseline_count`` bids existed at warm-up and are
        stored silently. Anything beyond that count is compared as usual.
        """
        ordered = sorted(bids, key=lambda bid: bid.created_at or EPOCH)
        baseline = ordered[:baseline_count]
        for bid in baseline:
            self.store.upsert_bid(bid)
        self.store.mark_bids_loaded(job.job_id)

        logger.info(
            f"Loaded {len(baseline)} baseline bids for job {job.job_id}",
            extra={"event": "tracker.bids.backfilled", "bid_count": len(baseline)},
        )
        return self._diff_bids(job, ordered[baseline_count:], now)
