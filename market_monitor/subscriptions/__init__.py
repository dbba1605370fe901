"""Subscriber filters: the registry and the interest matcher."""

from .matcher import InterestMatcher, followers, interested_subscribers
from .registry import SubscriptionRegistry, normalize_keyword, normalize_tag

__all__ = [
    "SubscriptionRegistry",
    "InterestMatcher",
    "interested_subscribers",
    "followers",
    "normalize_keyword",
    "normalize_tag",
]
