"""Periodic execution of the dispatch cycle."""

from .service import SchedulerService

__all__ = ["SchedulerService"]
