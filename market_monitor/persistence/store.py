"""Full-snapshot load/save of the subscription registry.

Both operations report failure through their result object instead of
raising, so a broken disk never takes the registry down with it.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from market_monitor.domain.models import Subscription
from market_monitor.logging import get_logger

from .database import Database
from .exceptions import PersistenceError
from .repositories import SubscriptionRepository

logger = get_logger(__name__, component="persistence")


@dataclass
class LoadResult:
    """Outcome of reading the persisted registry.

    ``subscriptions`` is None when the read failed; an empty list means the
    store was readable and empty.
    """

    subscriptions: Optional[List[Subscription]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SaveResult:
    """Outcome of writing a registry snapshot."""

    ok: bool
    count: int = 0
    error: Optional[str] = None


class SubscriptionStore:
    """Persists the subscription registry as a whole."""

    def __init__(self, database: Database):
        self.database = database

    def load(self) -> LoadResult:
        try:
            with self.database.session() as session:
                subscriptions = SubscriptionRepository(session).list_all()
        except PersistenceError as e:
            logger.error(
                f"Error loading subscriptions: {e}",
                extra={"event": "subscriptions.load.failed"},
            )
            return LoadResult(error=str(e))

        logger.info(
            f"Loaded {len(subscriptions)} subscriptions",
            extra={"event": "subscriptions.loaded", "count": len(subscriptions)},
        )
        return LoadResult(subscriptions=subscriptions)

    def save(self, subscriptions: Sequence[Subscription]) -> SaveResult:
        try:
            with self.database.session() as session:
                count = SubscriptionRepository(session).replace_all(subscriptions)
        except PersistenceError as e:
            logger.error(
                f"Error saving subscriptions: {e}",
                extra={"event": "subscriptions.save.failed", "count": len(subscriptions)},
            )
            return SaveResult(ok=False, error=str(e))

        logger.debug(
            f"Saved {count} subscriptions",
            extra={"event": "subscriptions.saved", "count": count},
        )
        return SaveResult(ok=True, count=count)
