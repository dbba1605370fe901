"""Chat command handling for subscribers.

Every reply is MarkdownV2 text ready for :meth:`TelegramClient.send_message`.
Subscription commands are accepted in private chats only.
"""

from typing import Callable, Dict, Optional

from market_monitor.domain.models import Subscription
from market_monitor.logging import get_logger
from market_monitor.notifications.formatting import MessageFormatter, escape_code, escape_markdown
from market_monitor.subscriptions.registry import SubscriptionRegistry, normalize_tag
from market_monitor.tracker.store import SnapshotStore

logger = get_logger(__name__, component="commands")

PRIVATE_ONLY = "This command only works in DMs."
GROUP_GREETING = "NEAR AI Market Bot is active! I post marketplace updates here."
UNKNOWN_COMMAND = "Unknown command. Send /start to see what I can do."


def parse_command(text: str):
    """Split ``"/follow@MyBot abc"`` into ``("follow", "abc")``.

    Returns ``None`` for text that is not a command.
    """
    text = (text or "").strip()
    if not text.startswith("/"):
        return None
    head, _, rest = text.partition(" ")
    name = head[1:].split("@", 1)[0].lower()
    if not name:
        return None
    return name, rest.strip()


def _md(text: str) -> str:
    return escape_markdown(text)


class CommandHandler:
    """Maps one incoming chat message to one reply.

    Args:
        registry: Subscription registry to read and mutate
        store: Snapshot store, read for ``/status``
        formatter: Message renderer
        channel: Public channel advertised by ``/start``
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        store: SnapshotStore,
        formatter: MessageFormatter,
        channel: Optional[str] = None,
    ):
        self.registry = registry
        self.store = store
        self.formatter = formatter
        self.channel = channel
        self._private_commands: Dict[str, Callable[[int, str], str]] = {
            "follow": self._follow,
            "unfollow": self._unfollow,
            "keyword": self._keyword,
            "unkeyword": self._unkeyword,
            "tag": self._tag,
            "untag": self._untag,
            "mysubs": self._mysubs,
        }

    def handle(self, chat_id: int, chat_type: str, text: str) -> Optional[str]:
        """Reply for ``text`` sent in ``chat_id``, or ``None`` to stay silent.

        Plain (non-command) messages are ignored.
        """
        parsed = parse_command(text)
        if parsed is None:
            return None
        name, argument = parsed
        private = chat_type == "private"

        logger.info(
            f"Command /{name} from chat {chat_id}",
            extra={"event": "commands.received", "command": name, "chat_type": chat_type},
        )

        if name == "start":
            return self.formatter.welcome(self.channel) if private else _md(GROUP_GREETING)
        if name == "status":
            return self.formatter.status(self.store.summary())

        command = self._private_commands.get(name)
        if command is None:
            return _md(UNKNOWN_COMMAND) if private else None
        if not private:
            return _md(PRIVATE_ONLY)
        return command(chat_id, argument)

    def format_subscription(self, chat_id: int) -> str:
        """``/mysubs`` text for ``chat_id``; an unknown chat shows as empty."""
        subscription = self.registry.get(chat_id) or Subscription(subscriber_id=chat_id)
        return self.formatter.subscription(subscription)

    def _follow(self, chat_id: int, argument: str) -> str:
        agent_id = argument.split()[0] if argument else ""
        if not agent_id:
            return _md("Usage: /follow <agent_id>")
        if self.registry.subscribe_agent(chat_id, agent_id):
            return (
                f"✅ Now following agent `{escape_code(agent_id[:12])}...`\n"
                + _md("You'll be notified when they bid on jobs.")
            )
        return _md("You're already following this agent.")

    def _unfollow(self, chat_id: int, argument: str) -> str:
        agent_id = argument.split()[0] if argument else ""
        if not agent_id:
            return _md("Usage: /unfollow <agent_id>")
        if self.registry.unsubscribe_agent(chat_id, agent_id):
            return _md("✅ Unfollowed agent.")
        return _md("You weren't following this agent.")

    def _keyword(self, chat_id: int, argument: str) -> str:
        if not argument:
            return _md("Usage: /keyword <word or phrase>")
        if self.registry.subscribe_keyword(chat_id, argument):
            return _md(f'✅ Now watching for jobs matching "{argument}"')
        return _md("You're already watching for this keyword.")

    def _unkeyword(self, chat_id: int, argument: str) -> str:
        if not argument:
            return _md("Usage: /unkeyword <word or phrase>")
        if self.registry.unsubscribe_keyword(chat_id, argument):
            return _md(f'✅ Stopped watching "{argument}"')
        return _md("You weren't watching for this keyword.")

    def _tag(self, chat_id: int, argument: str) -> str:
        tag = argument.split()[0] if argument else ""
        if not normalize_tag(tag):
            return _md("Usage: /tag <tag_name>")
        if self.registry.subscribe_tag(chat_id, tag):
            return _md(f"✅ Now watching for jobs tagged #{normalize_tag(tag)}")
        return _md("You're already watching for this tag.")

    def _untag(self, chat_id: int, argument: str) -> str:
        tag = argument.split()[0] if argument else ""
        if not normalize_tag(tag):
            return _md("Usage: /untag <tag_name>")
        if self.registry.unsubscribe_tag(chat_id, tag):
            return _md(f"✅ Stopped watching #{normalize_tag(tag)}")
        return _md("You weren't watching for this tag.")

    def _mysubs(self, chat_id: int, argument: str) -> str:
        return self.format_subscription(chat_id)
