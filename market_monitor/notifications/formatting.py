"""Telegram MarkdownV2 message rendering with Jinja2 templates."""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from market_monitor.domain.models import (
    Bid,
    BidAccepted,
    Job,
    JobCompleted,
    NewBid,
    NewJob,
    StateChange,
    Subscription,
)
from market_monitor.tracker.store import StateSummary
from market_monitor.utils.timestamps import format_timestamp

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

DEFAULT_JOB_URL = "https://market.near.ai/jobs/{job_id}"

# keeps /mysubs under the Bot API message size
MAX_LISTED_FILTERS = 20

_MARKDOWN_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_markdown(text: Any) -> str:
    """Escape every MarkdownV2 control character in ``text``."""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", str(text))


def escape_code(text: Any) -> str:
    """Escape text placed inside an inline code span."""
    return str(text).replace("\\", "\\\\").replace("`", "\\`")


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with ``...``."""
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."


def plural(count: int, word: str) -> str:
    """``plural(1, "bid")`` -> ``"1 bid"``, ``plural(3, "bid")`` -> ``"3 bids"``."""
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_amount(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


class MessageFormatter:
    """Renders every message the bot sends.

    Templates live in ``market_monitor/notifications/message_templates`` and
    produce MarkdownV2; dynamic text goes through the ``md`` filter.

    Args:
        job_url_template: Link pattern for a job page, with ``{job_id}``
        poll_interval_text: Human description of the poll interval shown by
            ``/status`` (e.g. ``"5 minutes"``)
    """

    def __init__(
        self,
        job_url_template: str = DEFAULT_JOB_URL,
        poll_interval_text: str = "5 minutes",
        template_dir: str = "message_templates",
    ):
        self.job_url_template = job_url_template
        self.poll_interval_text = poll_interval_text
        self.env = Environment(
            loader=PackageLoader("market_monitor.notifications", template_dir),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["md"] = escape_markdown
        self.env.filters["code"] = escape_code
        self.env.filters["truncate_text"] = truncate
        self.env.globals["plural"] = plural

    def render(self, template_name: str, **context: Any) -> str:
        """Render one template and strip surrounding whitespace.

        Raises:
            NotificationTemplateError: On a missing template or variable
        """
        try:
            return self.env.get_template(template_name).render(**context).strip()
        except TemplateError as e:
            logger.error(f"Template rendering failed for {template_name}: {e}", exc_info=True)
            raise NotificationTemplateError(f"Template rendering failed for {template_name}: {e}") from e

    def job_url(self, job: Job) -> str:
        url = self.job_url_template.format(job_id=quote(job.job_id, safe=""))
        # inside the (...) of a MarkdownV2 link only ')' and '\' are special
        return url.replace("\\", "\\\\").replace(")", "\\)")

    def new_job(self, job: Job) -> str:
        budget = (
            f"{format_amount(job.budget_amount)} {job.budget_token}"
            if job.budget_amount
            else "Open budget"
        )
        return self.render(
            "new_job.md.j2",
            job=job,
            budget=budget,
            tags=" ".join(f"#{tag}" for tag in job.tags[:5]),
            url=self.job_url(job),
        )

    def new_bid(self, job: Job, bid: Bid) -> str:
        eta = f"{round(bid.eta_seconds / 3600)}h" if bid.eta_seconds is not None else "unknown"
        return self.render("new_bid.md.j2", job=job, bid=bid, eta=eta)

    def bid_accepted(self, job: Job, bid: Bid) -> str:
        return self.render("bid_accepted.md.j2", job=job, bid=bid)

    def job_completed(self, job: Job) -> str:
        return self.render("job_completed.md.j2", job=job)

    def for_change(self, change: StateChange) -> str:
        """Personal message for one change."""
        if isinstance(change, NewJob):
            return self.new_job(change.job)
        if isinstance(change, NewBid):
            return self.new_bid(change.job, change.bid)
        if isinstance(change, BidAccepted):
            return self.bid_accepted(change.job, change.bid)
        if isinstance(change, JobCompleted):
            return self.job_completed(change.job)
        raise TypeError(f"Unsupported change type: {type(change).__name__}")

    def change_summary(self, changes: Sequence[StateChange]) -> str:
        """Channel digest of one cycle; empty string for an empty cycle."""
        if not changes:
            return ""

        new_jobs = [c for c in changes if isinstance(c, NewJob)]
        listed_jobs: List[Dict[str, str]] = [
            {
                "title": c.job.title,
                "budget": f"{format_amount(c.job.budget_amount)}Ⓝ" if c.job.budget_amount else "Open",
            }
            for c in new_jobs[:3]
        ]
        return self.render(
            "change_summary.md.j2",
            new_job_count=len(new_jobs),
            listed_jobs=listed_jobs,
            more_jobs=max(len(new_jobs) - 3, 0),
            new_bid_count=sum(1 for c in changes if isinstance(c, NewBid)),
            accepted=[c for c in changes if isinstance(c, BidAccepted)],
            completed_count=sum(1 for c in changes if isinstance(c, JobCompleted)),
        )

    def status(self, summary: StateSummary) -> str:
        return self.render(
            "status.md.j2",
            job_count=summary.job_count,
            bid_count=summary.bid_count,
            last_update=format_timestamp(summary.last_update),
            poll_interval=self.poll_interval_text,
        )

    def welcome(self, channel: Optional[str] = None) -> str:
        """Private-chat ``/start`` reply listing the commands."""
        return self.render("welcome.md.j2", channel=channel)

    def subscription(self, subscription: Subscription) -> str:
        return self.render(
            "subscription.md.j2",
            agents=subscription.agents,
            shown_agents=subscription.agents[:5],
            keywords=", ".join(truncate(k, 40) for k in subscription.keywords[:MAX_LISTED_FILTERS]),
            more_keywords=max(len(subscription.keywords) - MAX_LISTED_FILTERS, 0),
            tags=" ".join(f"#{truncate(tag, 40)}" for tag in subscription.tags[:MAX_LISTED_FILTERS]),
            more_tags=max(len(subscription.tags) - MAX_LISTED_FILTERS, 0),
            empty=subscription.is_empty(),
        )

