"""Dispatch cycle orchestration."""

from .models import DispatchRunResult
from .runner import DispatchLoop

__all__ = ["DispatchLoop", "DispatchRunResult"]
