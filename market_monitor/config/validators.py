"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for likely mistakes that do not stop startup.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    poll_interval = config_dict.get("poll_interval")
    if isinstance(poll_interval, str):
        try:
            seconds = parse_duration(poll_interval)
        except DurationParseError:
            seconds = None
        # each cycle lists every job plus one bids request per busy job
        if seconds is not None and seconds < 60:
            warning_messages.append(f"Short poll_interval ({poll_interval}) may trigger API rate limits")

    telegram = config_dict.get("telegram") or {}
    if isinstance(telegram, dict):
        if not telegram.get("channel_id"):
            warning_messages.append(
                "telegram.channel_id is not set; cycle summaries will only be posted if CHANNEL_ID is set"
            )
        if telegram.get("commands_enabled") is False:
            warning_messages.append("telegram.commands_enabled is false; subscribers cannot manage filters")

    known_sections = {"poll_interval", "marketplace", "telegram", "logging", "storage"}
    for key in config_dict:
        if key not in known_sections:
            warning_messages.append(f"Unknown configuration section '{key}' will be ignored")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message through :mod:`warnings` as a ``UserWarning``."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
