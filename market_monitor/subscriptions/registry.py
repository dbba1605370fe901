"""In-memory subscription registry with write-through persistence."""

import threading
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from market_monitor.domain.models import Subscription
from market_monitor.logging import get_logger
from market_monitor.persistence.store import LoadResult, SaveResult

logger = get_logger(__name__, component="registry")


class RegistryStore(Protocol):
    def load(self) -> LoadResult:
        ...

    def save(self, subscriptions: Sequence[Subscription]) -> SaveResult:
        ...


def normalize_keyword(keyword: str) -> str:
    return keyword.strip().lower()


def normalize_tag(tag: str) -> str:
    """``"#Rust"`` -> ``"rust"``. Only one leading ``#`` is removed."""
    tag = tag.strip()
    if tag.startswith("#"):
        tag = tag[1:]
    return tag.lower()


class SubscriptionRegistry:
    """Subscriber id -> :class:`Subscription`, safe to share across threads.

    Mutations come from the command poller while the dispatch loop reads.
    Every read hands out deep copies taken under the lock, so a matching
    pass never iterates a list that is being modified.

    Each mutator returns True only if it changed something, and every change
    is saved immediately as a full snapshot. The snapshot is copied under the
    lock and written outside it, so readers never wait on the database. A
    snapshot older than one already saved is dropped. A failed save is logged
    and kept in ``last_save_result``; the in-memory change stands and the next
    successful save carries it to disk.
    """

    def __init__(self, store: Optional[RegistryStore] = None):
        self.store = store
        self.last_save_result: Optional[SaveResult] = None
        self._subscriptions: Dict[int, Subscription] = {}
        self._lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._version = 0
        self._saved_version = 0

    def load(self) -> int:
        """Replace in-memory state with the persisted snapshot.

        Returns:
            Number of subscriptions loaded. A failed read leaves the registry
            as it was and returns 0.
        """
        if self.store is None:
            return 0

        result = self.store.load()
        if not result.ok:
            return 0

        with self._lock:
            self._subscriptions = {s.subscriber_id: s for s in result.subscriptions or []}
            return len(self._subscriptions)

    def get_or_create(self, subscriber_id: int) -> Subscription:
        """Return a copy of the subscriber's record, creating an empty one if needed.

        Creating a record is not a mutation; it reaches disk with the
        subscriber's first actual subscribe.
        """
        with self._lock:
            return self._record(subscriber_id).model_copy(deep=True)

    def get(self, subscriber_id: int) -> Optional[Subscription]:
        with self._lock:
            subscription = self._subscriptions.get(subscriber_id)
            return subscription.model_copy(deep=True) if subscription else None

    def snapshot(self) -> List[Subscription]:
        """Deep copies of every record, in registration order."""
        with self._lock:
            return [s.model_copy(deep=True) for s in self._subscriptions.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe_agent(self, subscriber_id: int, agent_id: str) -> bool:
        return self._add(subscriber_id, "agents", agent_id.strip())

    def unsubscribe_agent(self, subscriber_id: int, agent_id: str) -> bool:
        return self._remove(subscriber_id, "agents", agent_id.strip())

    def subscribe_keyword(self, subscriber_id: int, keyword: str) -> bool:
        return self._add(subscriber_id, "keywords", normalize_keyword(keyword))

    def unsubscribe_keyword(self, subscriber_id: int, keyword: str) -> bool:
        return self._remove(subscriber_id, "keywords", normalize_keyword(keyword))

    def subscribe_tag(self, subscriber_id: int, tag: str) -> bool:
        return self._add(subscriber_id, "tags", normalize_tag(tag))

    def unsubscribe_tag(self, subscriber_id: int, tag: str) -> bool:
        return self._remove(subscriber_id, "tags", normalize_tag(tag))

    def _record(self, subscriber_id: int) -> Subscription:
        subscription = self._subscriptions.get(subscriber_id)
        if subscription is None:
            subscription = Subscription(subscriber_id=subscriber_id)
            self._subscriptions[subscriber_id] = subscription
        return subscription

    def _add(self, subscriber_id: int, field: str, value: str) -> bool:
        if not value:
            return False
        with self._lock:
            values: List[str] = getattr(self._record(subscriber_id), field)
            if value in values:
                return False
            values.append(value)
            pending = self._changed(subscriber_id, field, value, "added")
        self._persist(*pending)
        return True

    def _remove(self, subscriber_id: int, field: str, value: str) -> bool:
        if not value:
            return False
        with self._lock:
            subscription = self._subscriptions.get(subscriber_id)
            values: List[str] = getattr(subscription, field) if subscription else []
            if value not in values:
                return False
            values.remove(value)
            pending = self._changed(subscriber_id, field, value, "removed")
        self._persist(*pending)
        return True

    def _changed(self, subscriber_id: int, field: str, value: str, action: str) -> Tuple[int, List[Subscription]]:
        """Log a mutation and take the snapshot to save. Called with the lock held."""
        logger.info(
            f"Subscription {action}: {field}={value}",
            extra={
                "event": f"registry.subscription.{action}",
                "subscriber_id": subscriber_id,
                "filter": field,
            },
        )
        self._version += 1
        return self._version, [s.model_copy(deep=True) for s in self._subscriptions.values()]

    def _persist(self, version: int, subscriptions: List[Subscription]) -> None:
        if self.store is None:
            return
        with self._save_lock:
            # a newer snapshot already reached the store
            if version <= self._saved_version:
                return
            result = self.store.save(subscriptions)
            self.last_save_result = result
            if result.ok:
                self._saved_version = version
        if not result.ok:
            logger.warning(
                "Subscription change kept in memory only, save failed",
                extra={
                    "event": "registry.save.failed",
                    "error": result.error,
                },
            )
