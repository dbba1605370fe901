"""Scheduler service for the periodic dispatch cycle and command polling."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from market_monitor.logging import get_logger

logger = get_logger(__name__, component="scheduler")

DISPATCH_JOB_ID = "dispatch-cycle"
COMMAND_JOB_ID = "command-poll"


class SchedulerService:
    """
    Wraps APScheduler to run the dispatch cycle at the poll interval.

    Uses BackgroundScheduler so the main thread stays free for signal
    handling. When a command callable is given it runs as a second job on
    its own, shorter interval.
    """

    def __init__(
        self,
        dispatch_callable: Callable[[], object],
        interval_seconds: int,
        command_callable: Optional[Callable[[], object]] = None,
        command_interval_seconds: int = 2,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            dispatch_callable: Called on each cycle (e.g., dispatch_loop.run_once)
            interval_seconds: Seconds between dispatch cycles
            command_callable: Optional command poller (e.g., poller.poll_once)
            command_interval_seconds: Seconds between command polls
            shutdown_event: Optional event set on shutdown for coordination
        """
        self.dispatch_callable = dispatch_callable
        self.interval_seconds = interval_seconds
        self.command_callable = command_callable
        self.command_interval_seconds = command_interval_seconds
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """
        Register the jobs and start the scheduler.

        The first dispatch cycle runs one interval after startup; the warm-up
        done at startup already covers the current marketplace state.
        """
        if self.scheduler.running:
            logger.warning("Scheduler already running", extra={"event": "scheduler.already_running"})
            return

        self.scheduler.add_job(
            func=self.dispatch_callable,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=DISPATCH_JOB_ID,
            name="Marketplace dispatch cycle",
            replace_existing=True,
            misfire_grace_time=self.interval_seconds,
        )

        if self.command_callable is not None:
            self.scheduler.add_job(
                func=self.command_callable,
                trigger=IntervalTrigger(seconds=self.command_interval_seconds, timezone=timezone.utc),
                id=COMMAND_JOB_ID,
                name="Bot command polling",
                replace_existing=True,
                next_run_time=datetime.now(timezone.utc),
            )

        self.scheduler.start()

        next_run = self.get_next_run_time()
        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "commands_enabled": self.command_callable is not None,
                "next_run_time": next_run.isoformat() if next_run else None,
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: If True, wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> None:
        """Run one dispatch cycle synchronously in the current thread."""
        logger.info("Triggering immediate dispatch cycle", extra={"event": "scheduler.trigger_now"})
        self.dispatch_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """
        Get the next scheduled dispatch time.

        Returns:
            Next run time as a datetime, or None if not scheduled
        """
        job = self.scheduler.get_job(DISPATCH_JOB_ID)
        return job.next_run_time if job else None
