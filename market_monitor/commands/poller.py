"""Reads bot updates and answers commands."""

from typing import Any, Dict, Optional

from market_monitor.logging import get_logger
from market_monitor.logging.context import log_context
from market_monitor.notifications.models import DeliveryError
from market_monitor.notifications.telegram import TelegramClient

from .handler import CommandHandler

logger = get_logger(__name__, component="commands")


class CommandPoller:
    """Pulls pending updates with ``getUpdates`` and replies to each command.

    The offset only moves forward: an update is acknowledged once it has been
    handled, even if handling or replying failed, so one bad message cannot
    block the queue.
    """

    def __init__(self, client: TelegramClient, handler: CommandHandler, wait_seconds: int = 0):
        self.client = client
        self.handler = handler
        self.wait_seconds = wait_seconds
        self.offset: Optional[int] = None

    def poll_once(self) -> int:
        """Handle every pending update. Never raises.

        Returns:
            Number of updates processed
        """
        try:
            updates = self.client.get_updates(offset=self.offset, wait_seconds=self.wait_seconds)
        except DeliveryError as e:
            logger.warning(
                f"Fetching bot updates failed: {e}",
                extra={"event": "commands.poll.failed", "status_code": e.status_code},
            )
            return 0

        for update in updates:
            update_id = update.get("update_id")
            try:
                self._process(update)
            except Exception as e:
                logger.error(
                    f"Unexpected error handling update {update_id}: {e}",
                    exc_info=True,
                    extra={"event": "commands.update.error"},
                )
            if isinstance(update_id, int):
                self.offset = max(self.offset or 0, update_id + 1)

        if updates:
            logger.debug(
                f"Processed {len(updates)} bot updates",
                extra={"event": "commands.poll.completed", "update_count": len(updates), "offset": self.offset},
            )
        return len(updates)

    def _process(self, update: Dict[str, Any]) -> None:
        message = update.get("message") or {}
        text = message.get("text")
        chat = message.get("chat") or {}
        chat_id = chat.get("id")
        if not text or chat_id is None:
            return

        with log_context(subscriber_id=chat_id):
            reply = self.handler.handle(chat_id, chat.get("type", ""), text)
            if reply is None:
                return
            try:
                self.client.send_message(chat_id, reply)
            except DeliveryError as e:
                logger.warning(
                    f"Reply to chat {chat_id} failed: {e}",
                    extra={"event": "commands.reply.failed", "status_code": e.status_code},
                )
