"""Delivery of change notifications to the channel and to subscribers.

The Notifier renders with MessageFormatter and sends with TelegramClient,
retrying transient failures with exponential backoff. Every send returns a
DeliveryResult; a failure for one recipient never prevents the others.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence, Union

from market_monitor.domain.models import StateChange
from market_monitor.logging import get_logger

from .formatting import MessageFormatter
from .models import DeliveryError, DeliveryResult, NotificationTemplateError
from .telegram import TelegramClient

logger = get_logger(__name__, component="notification")

MAX_RETRY_DELAY = 60.0


class Notifier:
    """Sends the per-cycle channel summary and personal change messages.

    Args:
        client: Telegram transport
        formatter: Message renderer
        channel_id: Broadcast channel (``@name`` or numeric id); ``None``
            disables broadcasting
        max_retries: Extra attempts after a retryable failure
        retry_initial_delay: Seconds before the first retry
        retry_backoff_multiplier: Growth factor between retries
        sleep: Injected for tests
    """

    def __init__(
        self,
        client: TelegramClient,
        formatter: MessageFormatter,
        channel_id: Optional[Union[int, str]] = None,
        max_retries: int = 2,
        retry_initial_delay: float = 1.0,
        retry_backoff_multiplier: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.formatter = formatter
        self.channel_id = channel_id
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self._sleep = sleep
        self.logger = logger_instance or logger

    def broadcast(self, changes: Sequence[StateChange]) -> Optional[DeliveryResult]:
        """Post one summary of ``changes`` to the channel.

        Returns:
            The delivery result, or ``None`` when nothing was sent (empty
            cycle or no channel configured)
        """
        if not changes or self.channel_id is None:
            return None

        try:
            text = self.formatter.change_summary(changes)
        except NotificationTemplateError as e:
            return DeliveryResult(recipient=self.channel_id, kind="summary", status="failed", attempts=0, error=str(e))
        if not text:
            return None

        result = self.send(self.channel_id, text, kind="summary")
        if result.sent:
            self.logger.info(
                f"Broadcast summary of {len(changes)} changes to {self.channel_id}",
                extra={"event": "notification.broadcast.sent", "change_count": len(changes)},
            )
        return result

    def notify(self, change: StateChange, recipients: Iterable[int]) -> List[DeliveryResult]:
        """Send the personal message for ``change`` to every recipient."""
        recipients = list(recipients)
        if not recipients:
            return []

        try:
            text = self.formatter.for_change(change)
        except NotificationTemplateError as e:
            return [
                DeliveryResult(recipient=r, kind=change.kind, status="failed", attempts=0, error=str(e))
                for r in recipients
            ]

        return [self.send(recipient, text, kind=change.kind) for recipient in recipients]

    def send(self, recipient: Union[int, str], text: str, kind: str = "message") -> DeliveryResult:
        """Send ``text`` to one recipient with retry/backoff. Never raises."""
        max_attempts = self.max_retries + 1
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            try:
                self.client.send_message(recipient, text)
                self.logger.debug(
                    f"Delivered {kind} to {recipient} (attempts: {attempt})",
                    extra={"event": "notification.send.success", "kind": kind, "attempt": attempt},
                )
                return DeliveryResult(recipient=recipient, kind=kind, status="sent", attempts=attempt)
            except DeliveryError as e:
                last_error = str(e)
                if not e.is_retryable or attempt == max_attempts:
                    self.logger.error(
                        f"Delivery of {kind} to {recipient} failed after {attempt} attempts: {e}",
                        extra={
                            "event": "notification.send.failure",
                            "kind": kind,
                            "attempt": attempt,
                            "status_code": e.status_code,
                            "retry_remaining": False,
                        },
                    )
                    return DeliveryResult(
                        recipient=recipient, kind=kind, status="failed", attempts=attempt, error=last_error
                    )

                delay = self._retry_delay(attempt, e.retry_after)
                self.logger.warning(
                    f"Delivery of {kind} to {recipient} failed (attempt {attempt}/{max_attempts}), "
                    f"retrying in {delay:.1f}s: {e}",
                    extra={
                        "event": "notification.send.failure",
                        "kind": kind,
                        "attempt": attempt,
                        "status_code": e.status_code,
                        "retry_remaining": True,
                    },
                )
                self._sleep(delay)

        return DeliveryResult(recipient=recipient, kind=kind, status="failed", attempts=max_attempts, error=last_error)

    def _retry_delay(self, attempt: int, retry_after: Optional[int]) -> float:
        if retry_after:
            return min(float(retry_after), MAX_RETRY_DELAY)
        delay = self.retry_initial_delay * (self.retry_backoff_multiplier ** (attempt - 1))
        return min(delay, MAX_RETRY_DELAY)
