"""Scoped logging context backed by contextvars.

Fields bound here (``run_id``, ``job_id``, ``subscriber_id`` ...) are merged
into every record emitted while the scope is active, in the current thread or
task only.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Dict, Iterator

_context: ContextVar[Dict[str, Any]] = ContextVar("market_monitor_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields currently bound to the logging scope."""
    return dict(_context.get())


def push_log_context(**fields: Any) -> Token:
    """Bind ``fields`` on top of the current scope.

    Returns:
        Token to hand back to :func:`pop_log_context`
    """
    return _context.set({**_context.get(), **fields})


def pop_log_context(token: Token) -> None:
    """Restore the scope that was active before the matching push."""
    _context.reset(token)


def clear_log_context() -> None:
    """Drop every bound field. Used by tests."""
    _context.set({})


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind ``fields`` for the duration of a ``with`` block.

    Example:
        >>> with log_context(run_id="3f2a"):
        ...     logger.info("Dispatch cycle started")
    """
    token = push_log_context(**fields)
    try:
        yield get_log_context()
    finally:
        pop_log_context(token)
