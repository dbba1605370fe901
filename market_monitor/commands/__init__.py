"""Subscriber commands received through the bot."""

from .handler import CommandHandler, parse_command
from .poller import CommandPoller

__all__ = ["CommandHandler", "CommandPoller", "parse_command"]
