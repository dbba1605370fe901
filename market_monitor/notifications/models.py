"""Result types and exceptions for message delivery."""

from dataclasses import dataclass
from typing import Optional, Union


class NotificationError(Exception):
    """Base exception for notification failures."""


class NotificationTemplateError(NotificationError):
    """A message template could not be rendered."""


class DeliveryError(NotificationError):
    """The chat transport rejected or failed to deliver a message.

    Attributes:
        status_code: HTTP status, 0 if no response was received
        retry_after: Seconds the transport asked us to wait, if it said so
    """

    def __init__(self, message: str, status_code: int = 0, retry_after: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def is_retryable(self) -> bool:
        return self.status_code in (0, 429) or self.status_code >= 500


@dataclass
class DeliveryResult:
    """Outcome of sending one message to one recipient.

    Attributes:
        recipient: Chat id or channel name
        kind: What was sent (``summary`` or a change kind)
        status: ``sent`` or ``failed``
        attempts: Number of send attempts made
        error: Last error message when failed
    """

    recipient: Union[int, str]
    kind: str
    status: str
    attempts: int = 1
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == "sent"
