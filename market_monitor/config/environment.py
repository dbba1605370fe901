"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvironmentConfig:
    """Secrets and deployment overrides read from the environment."""

    def __init__(
        self,
        telegram_bot_token: str,
        marketplace_api_key: Optional[str] = None,
        channel_id: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.telegram_bot_token = telegram_bot_token
        self.marketplace_api_key = marketplace_api_key
        self.channel_id = channel_id
        self.log_level = log_level.upper() if log_level else None
        self.database_url = database_url
        self.environment = environment or "local"

    def __repr__(self) -> str:
        # tokens stay out of logs and tracebacks
        return (
            f"EnvironmentConfig(environment={self.environment!r}, channel_id={self.channel_id!r}, "
            f"api_key_set={self.marketplace_api_key is not None})"
        )


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required environment variables:
    - TELEGRAM_BOT_TOKEN: Bot token issued by @BotFather

    Optional environment variables:
    - NEAR_MARKET_API_KEY: Bearer token for the marketplace API
    - CHANNEL_ID: Broadcast channel, overrides telegram.channel_id
    - LOG_LEVEL: Overrides logging.level
    - DATABASE_URL: Overrides storage.database_url
    - ENVIRONMENT: Label stamped on log records (default: local)

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    token = (os.getenv("TELEGRAM_BOT_TOKEN") or "").strip()
    log_level = os.getenv("LOG_LEVEL")

    if not token:
        errors.append("Missing required environment variable: TELEGRAM_BOT_TOKEN")
    elif ":" not in token:
        errors.append("Invalid TELEGRAM_BOT_TOKEN: expected the '<bot id>:<secret>' form issued by @BotFather")

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Create a bot with @BotFather to obtain a token",
            ],
        )

    return EnvironmentConfig(
        telegram_bot_token=token,
        marketplace_api_key=os.getenv("NEAR_MARKET_API_KEY") or None,
        channel_id=os.getenv("CHANNEL_ID") or None,
        log_level=log_level or None,
        database_url=os.getenv("DATABASE_URL") or None,
        environment=os.getenv("ENVIRONMENT") or None,
    )
