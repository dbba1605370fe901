"""Domain models for the marketplace monitor."""

from .models import (
    Bid,
    BidAccepted,
    BidStatus,
    Job,
    JobCompleted,
    JobLike,
    JobStatus,
    NewBid,
    NewJob,
    StateChange,
    Subscription,
)

__all__ = [
    "Job",
    "Bid",
    "JobStatus",
    "BidStatus",
    "JobLike",
    "StateChange",
    "NewJob",
    "JobCompleted",
    "NewBid",
    "BidAccepted",
    "Subscription",
]
