"""Dispatch loop: detect marketplace changes and deliver them."""

import threading
from uuid import uuid4

from market_monitor.logging import get_logger
from market_monitor.logging.context import log_context
from market_monitor.notifications.service import Notifier
from market_monitor.subscriptions.matcher import InterestMatcher
from market_monitor.tracker.detector import ChangeDetector
from market_monitor.tracker.models import WarmUpResult
from market_monitor.utils.timestamps import utc_now

from .models import DispatchRunResult

logger = get_logger(__name__, component="dispatch")


class DispatchLoop:
    """
    Runs one monitoring cycle at a time.

    A cycle fetches the marketplace through the detector, posts the summary
    to the broadcast channel, then sends each change to the subscribers the
    matcher selects. Broadcast happens before personal messages, and changes
    are delivered in detection order.
    """

    def __init__(self, detector: ChangeDetector, matcher: InterestMatcher, notifier: Notifier):
        self.detector = detector
        self.matcher = matcher
        self.notifier = notifier
        self.initialized = False
        self._lock = threading.Lock()

    def initialize(self) -> WarmUpResult:
        """Load the baseline snapshot so existing jobs are not announced.

        If the marketplace cannot be listed the loop stays uninitialized and
        the next :meth:`run_once` retries the warm-up.
        """
        with self._lock:
            return self._warm_up()

    def _warm_up(self) -> WarmUpResult:
        result = self.detector.warm_up()
        self.initialized = result.ok
        return result

    def run_once(self) -> DispatchRunResult:
        """
        Execute one cycle. Never raises.

        Returns:
            DispatchRunResult; ``skipped`` is set when a previous cycle still
            holds the lock
        """
        run_started_at = utc_now()
        run_id = uuid4().hex

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Dispatch cycle skipped: previous cycle still in progress",
                    extra={"event": "dispatch.run.skipped", "reason": "lock_held"},
                )
            return DispatchRunResult(run_started_at=run_started_at, run_finished_at=utc_now(), skipped=True)

        try:
            with log_context(run_id=run_id):
                if not self.initialized:
                    warm_up = self._warm_up()
                    logger.info(
                        "Dispatch cycle used for warm-up",
                        extra={"event": "dispatch.run.warm_up", "ok": warm_up.ok},
                    )
                    return DispatchRunResult(
                        run_started_at=run_started_at,
                        run_finished_at=utc_now(),
                        fault=warm_up.fault,
                        failed_job_ids=list(warm_up.failed_job_ids),
                        warm_up=True,
                    )

                logger.info("Dispatch cycle started", extra={"event": "dispatch.run.started"})
                result = self._run_cycle(run_started_at)

                logger.info(
                    f"Dispatch cycle completed: {result.change_count} changes, "
                    f"{result.notifications_sent} notifications sent, "
                    f"{result.notifications_failed} failed",
                    extra={
                        "event": "dispatch.run.completed",
                        "duration_ms": int(result.duration_seconds * 1000),
                        "change_count": result.change_count,
                        "broadcast_sent": result.broadcast_sent,
                        "notifications_sent": result.notifications_sent,
                        "notifications_failed": result.notifications_failed,
                        "had_errors": result.had_errors,
                    },
                )
                return result
        finally:
            self._lock.release()

    def _run_cycle(self, run_started_at) -> DispatchRunResult:
        detection = self.detector.detect()
        broadcast_sent = False
        sent = failed = 0

        if detection.changes:
            try:
                delivery = self.notifier.broadcast(detection.changes)
                broadcast_sent = bool(delivery and delivery.sent)
            except Exception as e:
                logger.error(
                    f"Unexpected error broadcasting summary: {e}",
                    exc_info=True,
                    extra={"event": "dispatch.broadcast.error"},
                )

            for change in detection.changes:
                try:
                    recipients = self.matcher.recipients_for(change)
                    for delivery in self.notifier.notify(change, recipients):
                        if delivery.sent:
                            sent += 1
                        else:
                            failed += 1
                except Exception as e:
                    failed += 1
                    logger.error(
                        f"Unexpected error notifying {change.kind}: {e}",
                        exc_info=True,
                        extra={"event": "dispatch.notify.error", "kind": change.kind},
                    )

        return DispatchRunResult(
            run_started_at=run_started_at,
            run_finished_at=utc_now(),
            change_count=len(detection.changes),
            broadcast_sent=broadcast_sent,
            notifications_sent=sent,
            notifications_failed=failed,
            fault=detection.fault,
            failed_job_ids=list(detection.failed_job_ids),
        )
