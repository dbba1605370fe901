"""Result of one dispatch cycle."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class DispatchRunResult:
    """
    Aggregate outcome of a detect -> broadcast -> notify cycle.

    Attributes:
        run_started_at: UTC timestamp when the cycle began
        run_finished_at: UTC timestamp when the cycle completed
        duration_seconds: Wall time of the cycle
        change_count: Changes detected this cycle
        broadcast_sent: Whether a channel summary was delivered
        notifications_sent: Personal messages delivered
        notifications_failed: Personal messages that could not be delivered
        fault: Marketplace listing error, when the cycle could not read it
        failed_job_ids: Jobs whose bids could not be re-fetched
        warm_up: True when the cycle loaded the baseline instead of diffing
        skipped: True when a previous cycle was still running
    """

    run_started_at: datetime
    run_finished_at: datetime
    duration_seconds: float = 0.0
    change_count: int = 0
    broadcast_sent: bool = False
    notifications_sent: int = 0
    notifications_failed: int = 0
    fault: Optional[str] = None
    failed_job_ids: List[str] = field(default_factory=list)
    warm_up: bool = False
    skipped: bool = False

    def __post_init__(self):
        if self.duration_seconds == 0.0:
            self.duration_seconds = (self.run_finished_at - self.run_started_at).total_seconds()

    @property
    def had_errors(self) -> bool:
        return self.fault is not None or bool(self.failed_job_ids) or self.notifications_failed > 0
