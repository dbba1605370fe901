"""Minimal Telegram Bot API client over requests."""

from typing import Any, Dict, List, Optional, Union

import requests

from market_monitor.logging import get_logger

from .models import DeliveryError

logger = get_logger(__name__, component="telegram")

API_ROOT = "https://api.telegram.org"

ChatId = Union[int, str]


class TelegramClient:
    """Sends messages and reads updates for one bot token.

    Args:
        bot_token: Token issued by @BotFather
        timeout: Request timeout in seconds (long polls add their own wait)
        api_root: Override for tests or a self-hosted Bot API server
    """

    def __init__(
        self,
        bot_token: str,
        timeout: int = 30,
        api_root: str = API_ROOT,
        session: Optional[requests.Session] = None,
    ):
        if not bot_token:
            raise ValueError("bot_token cannot be empty")
        self.timeout = timeout
        self._base = f"{api_root.rstrip('/')}/bot{bot_token}"
        self._session = session or requests.Session()

    def send_message(self, chat_id: ChatId, text: str, parse_mode: Optional[str] = "MarkdownV2") -> Dict[str, Any]:
        """Send ``text`` to ``chat_id`` with link previews disabled.

        Raises:
            DeliveryError: If Telegram could not be reached or refused the message
        """
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "link_preview_options": {"is_disabled": True},
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return self._call("sendMessage", payload, self.timeout)

    def get_updates(self, offset: Optional[int] = None, wait_seconds: int = 0) -> List[Dict[str, Any]]:
        """Fetch pending updates (messages only).

        Args:
            offset: First update id to return; pass ``last_update_id + 1`` to
                acknowledge everything before it
            wait_seconds: Long-poll duration; 0 returns immediately

        Raises:
            DeliveryError: If the call fails
        """
        payload: Dict[str, Any] = {"timeout": wait_seconds, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        result = self._call("getUpdates", payload, self.timeout + wait_seconds)
        return result if isinstance(result, list) else []

    def close(self) -> None:
        self._session.close()

    def _call(self, method: str, payload: Dict[str, Any], timeout: int) -> Any:
        try:
            response = self._session.post(f"{self._base}/{method}", json=payload, timeout=timeout)
        except requests.exceptions.RequestException as e:
            # the URL embeds the token, so only the exception type is logged
            logger.warning(
                f"Telegram {method} request failed",
                extra={"event": "telegram.request.failed", "method": method, "error_type": type(e).__name__},
            )
            raise DeliveryError(f"Telegram {method} request failed: {type(e).__name__}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("ok", False):
            description = body.get("description") or response.reason or "unknown error"
            retry_after = (body.get("parameters") or {}).get("retry_after")
            logger.warning(
                f"Telegram {method} rejected: {description}",
                extra={
                    "event": "telegram.request.rejected",
                    "method": method,
                    "status_code": response.status_code,
                    "retry_after": retry_after,
                },
            )
            raise DeliveryError(
                f"Telegram {method} failed: {description}",
                status_code=response.status_code,
                retry_after=retry_after,
            )

        return body.get("result")
