"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration with correct configuration
- First dispatch cycle one interval after startup
- Command polling as a second, immediate job
- Prevents overlapping runs (max_instances=1)
- Start/shutdown lifecycle
- Trigger now functionality
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from market_monitor.scheduler import SchedulerService
from market_monitor.scheduler.service import COMMAND_JOB_ID, DISPATCH_JOB_ID


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_scheduler_initialization(self):
        """Test that scheduler initializes with correct parameters."""
        mock_callable = Mock()
        shutdown_event = threading.Event()

        scheduler = SchedulerService(
            dispatch_callable=mock_callable,
            interval_seconds=60,
            shutdown_event=shutdown_event,
        )

        assert scheduler.interval_seconds == 60
        assert scheduler.dispatch_callable == mock_callable
        assert scheduler.command_callable is None
        assert scheduler.shutdown_event == shutdown_event
        assert not scheduler.is_running()

    def test_scheduler_start_and_shutdown(self):
        """Test scheduler start and shutdown lifecycle."""
        shutdown_event = threading.Event()
        scheduler = SchedulerService(
            dispatch_callable=Mock(),
            interval_seconds=300,
            shutdown_event=shutdown_event,
        )

        scheduler.start()
        assert scheduler.is_running()

        scheduler.shutdown(wait=False)
        assert not scheduler.is_running()
        assert shutdown_event.is_set()

    def test_job_defaults(self):
        """Test that jobs never overlap and missed runs are coalesced."""
        scheduler = SchedulerService(dispatch_callable=Mock(), interval_seconds=60)

        assert scheduler.scheduler._job_defaults["max_instances"] == 1
        assert scheduler.scheduler._job_defaults["coalesce"] is True

    def test_first_dispatch_waits_one_interval(self):
        """Test that startup does not trigger an immediate dispatch."""
        mock_callable = Mock()
        scheduler = SchedulerService(dispatch_callable=mock_callable, interval_seconds=60)

        before = datetime.now(timezone.utc)
        scheduler.start()
        try:
            next_run = scheduler.get_next_run_time()
            assert next_run is not None
            assert next_run >= before + timedelta(seconds=59)
            time.sleep(0.2)
            mock_callable.assert_not_called()
        finally:
            scheduler.shutdown(wait=False)

    def test_dispatch_job_registered(self):
        scheduler = SchedulerService(dispatch_callable=Mock(), interval_seconds=60)
        scheduler.start()
        try:
            assert scheduler.scheduler.get_job(DISPATCH_JOB_ID) is not None
            assert scheduler.scheduler.get_job(COMMAND_JOB_ID) is None
        finally:
            scheduler.shutdown(wait=False)

    def test_command_polling_starts_immediately(self):
        """Test that the command job runs right away on its own interval."""
        polled = threading.Event()
        dispatch = Mock()

        scheduler = SchedulerService(
            dispatch_callable=dispatch,
            interval_seconds=3600,
            command_callable=polled.set,
            command_interval_seconds=1,
        )
        scheduler.start()
        try:
            assert polled.wait(timeout=3)
            assert scheduler.scheduler.get_job(COMMAND_JOB_ID) is not None
            dispatch.assert_not_called()
        finally:
            scheduler.shutdown(wait=False)

    def test_scheduler_prevents_concurrent_runs(self):
        """Test that max_instances=1 prevents concurrent executions."""
        active = [0]
        peak = [0]
        lock = threading.Lock()

        def slow_callable():
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(1.5)
            with lock:
                active[0] -= 1

        scheduler = SchedulerService(dispatch_callable=slow_callable, interval_seconds=1)

        scheduler.start()
        time.sleep(3.5)
        scheduler.shutdown(wait=True)

        assert peak[0] == 1

    def test_trigger_now_executes_immediately(self):
        """Test that trigger_now executes the callable synchronously."""
        mock_callable = Mock()
        scheduler = SchedulerService(dispatch_callable=mock_callable, interval_seconds=3600)

        scheduler.trigger_now()

        mock_callable.assert_called_once()

    def test_get_next_run_time_before_start(self):
        scheduler = SchedulerService(dispatch_callable=Mock(), interval_seconds=60)

        assert scheduler.get_next_run_time() is None

    def test_scheduler_interval(self):
        """Test that scheduler respects the configured interval."""
        execution_times = []

        scheduler = SchedulerService(
            dispatch_callable=lambda: execution_times.append(time.time()),
            interval_seconds=1,
        )

        scheduler.start()
        time.sleep(3.5)
        scheduler.shutdown(wait=True)

        assert len(execution_times) >= 2
        intervals = [b - a for a, b in zip(execution_times, execution_times[1:])]
        for interval in intervals:
            assert 0.8 <= interval <= 1.5

    def test_multiple_start_calls_safe(self):
        """Test that calling start twice leaves one running scheduler."""
        scheduler = SchedulerService(dispatch_callable=Mock(), interval_seconds=60)

        scheduler.start()
        scheduler.start()

        assert scheduler.is_running()
        scheduler.shutdown(wait=False)

    def test_callable_exceptions_dont_stop_scheduler(self):
        """Test that exceptions in the callable don't stop the scheduler."""
        call_count = [0]

        def failing_callable():
            call_count[0] += 1
            if call_count[0] == 1:
                raise Exception("Intentional error")

        scheduler = SchedulerService(dispatch_callable=failing_callable, interval_seconds=1)

        scheduler.start()
        time.sleep(2.5)
        scheduler.shutdown(wait=True)

        assert call_count[0] >= 2
