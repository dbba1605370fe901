"""Interest matching: which subscribers care about a given change.

Job-shaped subjects are matched per subscriber by the first rule that holds:

1. the job's creator is a followed agent;
2. a watched keyword is a case-insensitive substring of the title or the
   description;
3. a watched tag equals one of the job's tags, ignoring case.

Bid-shaped changes only reach followers of the bidding agent.

The functions here are pure: they read a registry snapshot and never modify
it. Results keep registry order and list each subscriber once.
"""

from typing import Iterable, List

from market_monitor.domain.models import (
    BidAccepted,
    JobCompleted,
    JobLike,
    NewBid,
    NewJob,
    StateChange,
    Subscription,
)
from market_monitor.logging import get_logger

from .registry import SubscriptionRegistry

logger = get_logger(__name__, component="matcher")


def _matches_job(subscription: Subscription, creator: str, title: str, description: str, tags) -> bool:
    if creator in subscription.agents:
        return True
    if any(kw in title or kw in description for kw in subscription.keywords):
        return True
    return any(tag in tags for tag in subscription.tags)


def interested_subscribers(subject: JobLike, subscriptions: Iterable[Subscription]) -> List[int]:
    """Subscribers whose agent, keyword or tag filters match ``subject``."""
    title = (subject.title or "").lower()
    description = (subject.description or "").lower()
    tags = {tag.lower() for tag in subject.tags or ()}

    interested: List[int] = []
    for subscription in subscriptions:
        if subscription.subscriber_id in interested:
            continue
        if _matches_job(subscription, subject.creator_agent_id, title, description, tags):
            interested.append(subscription.subscriber_id)
    return interested


def followers(agent_id: str, subscriptions: Iterable[Subscription]) -> List[int]:
    """Subscribers following ``agent_id`` (exact, case-sensitive)."""
    return [s.subscriber_id for s in subscriptions if agent_id in s.agents]


class InterestMatcher:
    """Registry-backed front end for the matching functions.

    Each call takes its own snapshot of the registry, so a subscribe that
    lands mid-cycle is either fully visible to a call or not at all.
    """

    def __init__(self, registry: SubscriptionRegistry):
        self.registry = registry

    def interested_chats(self, job: JobLike) -> List[int]:
        return interested_subscribers(job, self.registry.snapshot())

    def agent_followers(self, agent_id: str) -> List[int]:
        return followers(agent_id, self.registry.snapshot())

    def recipients_for(self, change: StateChange) -> List[int]:
        """Subscribers that get a personal message for ``change``.

        Completed jobs are announced on the broadcast channel only.
        """
        if isinstance(change, NewJob):
            recipients = self.interested_chats(change.job)
        elif isinstance(change, (NewBid, BidAccepted)):
            recipients = self.agent_followers(change.bid.bidder_agent_id)
        elif isinstance(change, JobCompleted):
            recipients = []
        else:
            raise TypeError(f"Unsupported change type: {type(change).__name__}")

        logger.debug(
            f"{len(recipients)} recipients for {change.kind}",
            extra={"event": "matcher.recipients", "kind": change.kind, "count": len(recipients)},
        )
        return recipients
