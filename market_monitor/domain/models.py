"""Core domain models: marketplace records, state changes and subscriptions.

- Job / Bid: mirrors of the marketplace API payloads
- NewJob / JobCompleted / NewBid / BidAccepted: the detected transitions,
  unified by the ``StateChange`` discriminated union
- Subscription: one subscriber's notification filters
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from market_monitor.utils.timestamps import ensure_utc, utc_now


class JobStatus(str, Enum):
    """Lifecycle states of a marketplace job."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    """Lifecycle states of a bid."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class Job(BaseModel):
    """A job as last returned by the marketplace.

    ``job_id`` is the identity. ``status`` and ``bid_count`` are the fields the
    tracker compares between polls; everything else is carried for display
    and matching.
    """

    job_id: str = Field(..., min_length=1, description="Marketplace job identifier")
    creator_agent_id: str = Field(..., description="Agent that posted the job")
    title: str = Field("", description="Job title")
    description: str = Field("", description="Job description")
    tags: List[str] = Field(default_factory=list, description="Tags in source order")
    bid_count: int = Field(0, ge=0, description="Number of bids reported by the marketplace")
    status: JobStatus = Field(JobStatus.OPEN, description="Job lifecycle status")
    budget_amount: Optional[float] = Field(None, description="Budget, if the poster set one")
    budget_token: str = Field("NEAR", description="Token the budget is denominated in")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("title", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def none_to_no_tags(cls, v):
        return [] if v is None else v

    @field_validator("created_at", "updated_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class Bid(BaseModel):
    """A bid against a job. ``amount`` is kept verbatim, never parsed."""

    bid_id: str = Field(..., min_length=1, description="Marketplace bid identifier")
    job_id: str = Field(..., description="Job the bid was placed on")
    bidder_agent_id: str = Field(..., description="Agent that placed the bid")
    amount: str = Field("0", description="Offered amount as sent by the marketplace")
    proposal: str = Field("", description="Proposal text")
    status: BidStatus = Field(BidStatus.PENDING, description="Bid lifecycle status")
    eta_seconds: Optional[int] = Field(None, ge=0, description="Estimated delivery time")
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v):
        return "0" if v is None else str(v)

    @field_validator("proposal", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("created_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class _Change(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(frozen=True)


class NewJob(_Change):
    """A job seen for the first time."""

    kind: Literal["new_job"] = "new_job"
    job: Job


class JobCompleted(_Change):
    """A known job whose status moved to ``completed``."""

    kind: Literal["job_completed"] = "job_completed"
    job: Job


class NewBid(_Change):
    """A bid seen for the first time on a known job."""

    kind: Literal["new_bid"] = "new_bid"
    job: Job
    bid: Bid


class BidAccepted(_Change):
    """A known bid whose status moved to ``accepted``."""

    kind: Literal["bid_accepted"] = "bid_accepted"
    job: Job
    bid: Bid


StateChange = Annotated[
    Union[NewJob, JobCompleted, NewBid, BidAccepted],
    Field(discriminator="kind"),
]


class JobLike(Protocol):
    """What the interest matcher needs from a job-shaped subject."""

    creator_agent_id: str
    title: str
    description: str
    tags: Sequence[str]


class Subscription(BaseModel):
    """Notification filters of one subscriber (a chat).

    Lists keep insertion order and never contain duplicates. Keywords and tags
    are stored normalised (lower-case, tags without a leading ``#``); agent ids
    are stored as given.
    """

    subscriber_id: int = Field(..., description="Chat identifier of the subscriber")
    agents: List[str] = Field(default_factory=list, description="Followed agent ids")
    keywords: List[str] = Field(default_factory=list, description="Watched keywords")
    tags: List[str] = Field(default_factory=list, description="Watched tags")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def is_empty(self) -> bool:
        """True when the subscriber follows nothing."""
        return not (self.agents or self.keywords or self.tags)
