"""Result types returned by the change detector."""

from dataclasses import dataclass, field
from typing import List, Optional

from market_monitor.domain.models import StateChange


@dataclass
class DetectionResult:
    """Outcome of one detection cycle.

    Attributes:
        changes: Detected transitions, in job listing order
        fault: Set when the job listing itself could not be fetched. The
            store was left untouched and ``changes`` is empty.
        failed_job_ids: Jobs whose bid re-fetch failed this cycle; their bid
            comparison was skipped, every other job was still processed
        jobs_seen: Number of jobs in the fetched listing
    """

    changes: List[StateChange] = field(default_factory=list)
    fault: Optional[str] = None
    failed_job_ids: List[str] = field(default_factory=list)
    jobs_seen: int = 0

    @property
    def degraded(self) -> bool:
        """True if any part of the cycle could not read the marketplace."""
        return self.fault is not None or bool(self.failed_job_ids)

    @property
    def unreachable(self) -> bool:
        return self.fault is not None


@dataclass
class WarmUpResult:
    """Outcome of loading the baseline snapshot."""

    job_count: int = 0
    bid_count: int = 0
    fault: Optional[str] = None
    failed_job_ids: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.fault is None
