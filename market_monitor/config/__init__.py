"""Configuration management for the marketplace monitor."""

from .duration import DurationParseError, humanize_seconds, parse_duration
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import apply_environment_overrides, load_config, parse_app_config
from .models import (
    AppConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MarketplaceConfig,
    StorageConfig,
    TelegramConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_app_config",
    "apply_environment_overrides",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "MarketplaceConfig",
    "TelegramConfig",
    "LoggingConfig",
    "StorageConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Duration helpers
    "parse_duration",
    "humanize_seconds",
    "DurationParseError",
    # Exceptions
    "ConfigurationError",
]
