"""HTTP client for the agent marketplace REST API.

Endpoints used:
    GET {base_url}/jobs               -> JSON array of jobs
    GET {base_url}/jobs/{id}          -> single job
    GET {base_url}/jobs/{id}/bids     -> JSON array of bids

An empty list means the marketplace answered with no data. Any failure to
get an answer raises a :class:`MarketplaceError`, so callers can tell
"nothing new" apart from "unreachable".
"""

import logging
from typing import Any, List, Optional, Protocol, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from market_monitor.domain.models import Bid, Job
from market_monitor.logging import get_logger

from .exceptions import (
    MarketplaceHTTPError,
    MarketplaceResponseError,
    MarketplaceTimeoutError,
)

logger = get_logger(__name__, component="marketplace")

DEFAULT_BASE_URL = "https://market.near.ai/v1"

ModelT = TypeVar("ModelT", bound=BaseModel)


class JobSource(Protocol):
    """The two reads the change detector depends on."""

    def list_jobs(self) -> List[Job]:
        ...

    def list_bids(self, job_id: str) -> List[Bid]:
        ...


class MarketplaceClient:
    """Thin, synchronous wrapper over the marketplace API.

    Attributes:
        base_url: API root without trailing slash
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        timeout: int = 30,
        user_agent: str = "MarketMonitor/1.0",
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("base_url cannot be empty")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got: {timeout}")

        self.base_url = base_url.strip().rstrip("/")
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.headers.update(
            {"User-Agent": user_agent, "Content-Type": "application/json"}
        )
        if api_key:
            self._session.headers["Authorization"] = f"Bearer {api_key}"

    def list_jobs(self) -> List[Job]:
        """Fetch every job the marketplace currently lists.

        Raises:
            MarketplaceError: If the listing could not be retrieved
        """
        url = f"{self.base_url}/jobs"
        jobs = self._parse_list(self._get(url), Job, url)
        logger.debug(
            f"Fetched {len(jobs)} jobs",
            extra={"event": "marketplace.jobs.fetched", "count": len(jobs)},
        )
        return jobs

    def list_bids(self, job_id: str) -> List[Bid]:
        """Fetch all bids placed on ``job_id``.

        Raises:
            MarketplaceError: If the bid listing could not be retrieved
        """
        url = f"{self.base_url}/jobs/{job_id}/bids"
        bids = self._parse_list(self._get(url), Bid, url)
        logger.debug(
            f"Fetched {len(bids)} bids for job {job_id}",
            extra={"event": "marketplace.bids.fetched", "job_id": job_id, "count": len(bids)},
        )
        return bids

    def get_job(self, job_id: str) -> Optional[Job]:
        """Fetch a single job; None if the marketplace does not know it."""
        url = f"{self.base_url}/jobs/{job_id}"
        try:
            data = self._get(url)
        except MarketplaceHTTPError as e:
            if e.status_code == 404:
                return None
            raise
        try:
            return Job.model_validate(data)
        except ValidationError as e:
            raise MarketplaceResponseError(f"Malformed job payload from {url}: {e}", url=url) from e

    def close(self) -> None:
        self._session.close()

    def _get(self, url: str) -> Any:
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "marketplace.request.timeout", "url": url},
            )
            raise MarketplaceTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.warning(
                f"Request to {url} failed: {e}",
                extra={
                    "event": "marketplace.request.failed",
                    "url": url,
                    "error_type": type(e).__name__,
                },
            )
            raise MarketplaceHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            level = logging.WARNING if response.status_code >= 500 else logging.ERROR
            logger.log(
                level,
                f"HTTP {response.status_code} from {url}",
                extra={
                    "event": "marketplace.request.http_error",
                    "url": url,
                    "status_code": response.status_code,
                },
            )
            raise MarketplaceHTTPError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MarketplaceResponseError(f"Invalid JSON from {url}: {e}", url=url) from e

    @staticmethod
    def _parse_list(data: Any, model: Type[ModelT], url: str) -> List[ModelT]:
        if not isinstance(data, list):
            raise MarketplaceResponseError(
                f"Expected JSON array from {url}, got {type(data).__name__}", url=url
            )

        items: List[ModelT] = []
        for raw in data:
            try:
                items.append(model.model_validate(raw))
            except ValidationError as e:
                # one malformed record must not hide the rest of the listing
                ident = raw.get("job_id") or raw.get("bid_id") if isinstance(raw, dict) else None
                logger.warning(
                    f"Skipping malformed {model.__name__} from {url}",
                    extra={
                        "event": "marketplace.item.invalid",
                        "url": url,
                        "item_id": ident,
                        "error": str(e),
                    },
                )
        return items

