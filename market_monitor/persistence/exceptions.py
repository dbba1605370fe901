"""Persistence layer exceptions."""


class PersistenceError(Exception):
    """Base exception for storage failures.

    Repositories raise it; :class:`SubscriptionStore` turns it into a
    ``LoadResult``/``SaveResult`` so the registry never sees an exception.
    """


class DatabaseConnectionError(PersistenceError):
    """The database could not be opened, validated or initialised."""
