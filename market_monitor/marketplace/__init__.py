"""Marketplace API access: the HTTP client and its error types."""

from .client import DEFAULT_BASE_URL, JobSource, MarketplaceClient
from .exceptions import (
    MarketplaceError,
    MarketplaceHTTPError,
    MarketplaceResponseError,
    MarketplaceTimeoutError,
)

__all__ = [
    "MarketplaceClient",
    "JobSource",
    "DEFAULT_BASE_URL",
    "MarketplaceError",
    "MarketplaceHTTPError",
    "MarketplaceTimeoutError",
    "MarketplaceResponseError",
]
