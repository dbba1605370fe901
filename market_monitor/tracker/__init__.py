"""Marketplace state tracking: snapshot store and change detection."""

from .detector import ChangeDetector
from .models import DetectionResult, WarmUpResult
from .store import SnapshotStore, StateSummary

__all__ = [
    "ChangeDetector",
    "SnapshotStore",
    "StateSummary",
    "DetectionResult",
    "WarmUpResult",
]
