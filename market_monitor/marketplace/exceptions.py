"""Exceptions raised by the marketplace client."""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for every marketplace failure.

    Catching this is enough for callers that only need to know the
    marketplace could not be read (the tracker treats it as "unreachable").
    """


class MarketplaceHTTPError(MarketplaceError):
    """The request failed at the transport level or returned 4xx/5xx.

    ``status_code`` is 0 when no response was received at all.
    """

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    @property
    def is_retryable(self) -> bool:
        return self.status_code == 0 or self.status_code >= 500


class MarketplaceTimeoutError(MarketplaceError):
    """The request did not complete within the configured timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class MarketplaceResponseError(MarketplaceError):
    """The response body was not the JSON shape the endpoint promises."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url
