"""Message rendering and Telegram delivery."""

from .formatting import MessageFormatter, escape_markdown, truncate
from .models import DeliveryError, DeliveryResult, NotificationError, NotificationTemplateError
from .service import Notifier
from .telegram import TelegramClient

__all__ = [
    "MessageFormatter",
    "escape_markdown",
    "truncate",
    "TelegramClient",
    "Notifier",
    "DeliveryResult",
    "NotificationError",
    "NotificationTemplateError",
    "DeliveryError",
]
