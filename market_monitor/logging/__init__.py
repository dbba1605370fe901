"""Structured logging helpers shared by every component of the monitor."""

import logging
from typing import Optional, Union


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that stamps a ``component`` field onto every record.

    Fields passed through ``extra`` on the individual call win over the
    adapter defaults, so a call site can still override ``component``.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Return a module logger, optionally bound to a component name.

    Args:
        name: Logger name (normally ``__name__``)
        component: Component label injected into each record (tracker,
            registry, dispatch, ...)

    Example:
        >>> logger = get_logger(__name__, component="tracker")
        >>> logger.info("Cycle finished", extra={"event": "tracker.detect.completed"})
    """
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger
