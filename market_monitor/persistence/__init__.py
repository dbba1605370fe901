"""Persistence layer for subscription records (SQLAlchemy over SQLite).

Public API:
    - Database: engine + session lifecycle for one database URL
    - SubscriptionRepository: row-level access inside a session
    - SubscriptionStore: full-snapshot load()/save() returning result objects
    - PersistenceError, DatabaseConnectionError

Example usage:
    >>> database = Database("sqlite:///./data/market_monitor.db")
    >>> store = SubscriptionStore(database)
    >>> result = store.load()
    >>> result.subscriptions
    []
"""

from .database import DEFAULT_DATABASE_URL, Database
from .exceptions import DatabaseConnectionError, PersistenceError
from .repositories import SubscriptionRepository
from .store import LoadResult, SaveResult, SubscriptionStore

__all__ = [
    "Database",
    "DEFAULT_DATABASE_URL",
    "SubscriptionRepository",
    "SubscriptionStore",
    "LoadResult",
    "SaveResult",
    "PersistenceError",
    "DatabaseConnectionError",
]
