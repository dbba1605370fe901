"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from market_monitor.marketplace.client import DEFAULT_BASE_URL
from market_monitor.notifications.formatting import DEFAULT_JOB_URL
from market_monitor.persistence.database import DEFAULT_DATABASE_URL

from .duration import DurationParseError, humanize_seconds, parse_duration, validate_duration_range

MIN_POLL_INTERVAL = 30
MAX_POLL_INTERVAL = 86400


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class MarketplaceConfig(BaseModel):
    """Marketplace API settings."""

    base_url: str = Field(DEFAULT_BASE_URL, min_length=1, description="API root, without trailing /jobs")
    http_request_timeout: int = Field(30, ge=5, le=300, description="Request timeout (seconds)")
    user_agent: str = Field("MarketMonitor/1.0", min_length=1, description="User-Agent for API calls")

    @field_validator("base_url", "user_agent")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("base_url")
    @classmethod
    def require_http_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")


class TelegramConfig(BaseModel):
    """Bot delivery and command settings."""

    channel_id: Optional[Union[int, str]] = Field(
        None, description="Broadcast channel (@name or numeric id); unset disables the summary"
    )
    commands_enabled: bool = Field(True, description="Poll the bot for subscriber commands")
    command_poll_interval: int = Field(3, ge=1, le=60, description="Seconds between command polls")
    job_url_template: str = Field(DEFAULT_JOB_URL, description="Job page link, with a {job_id} placeholder")
    max_retries: int = Field(2, ge=0, le=10, description="Retry attempts for failed sends")
    retry_initial_delay: float = Field(1.0, ge=0.0, le=60.0, description="Initial retry delay in seconds")
    retry_backoff_multiplier: float = Field(2.0, ge=1.0, le=5.0, description="Backoff multiplier for retries")

    @field_validator("channel_id")
    @classmethod
    def normalize_channel(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            if v.lstrip("-").isdigit():
                return int(v)
        return v

    @field_validator("job_url_template")
    @classmethod
    def require_job_id_placeholder(cls, v: str) -> str:
        if "{job_id}" not in v:
            raise ValueError("job_url_template must contain a {job_id} placeholder")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format (json or key-value)")

    model_config = {"use_enum_values": True}


class StorageConfig(BaseModel):
    """Where subscriptions are persisted."""

    database_url: str = Field(DEFAULT_DATABASE_URL, min_length=1, description="SQLAlchemy database URL")


class AppConfig(BaseModel):
    """Root configuration object for the marketplace monitor."""

    poll_interval: str = Field("5m", description="Time between dispatch cycles")
    marketplace: MarketplaceConfig = Field(default_factory=MarketplaceConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Computed field
    poll_interval_seconds: Optional[int] = None

    @field_validator("poll_interval", mode="before")
    @classmethod
    def validate_poll_interval(cls, v) -> str:
        """Accept bare integers as seconds; check the parsed range."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = f"{v}s"
        if not isinstance(v, str):
            raise ValueError("poll_interval must be a duration string such as '5m' or 'PT5M'")
        try:
            seconds = parse_duration(v)
            validate_duration_range(seconds, min_seconds=MIN_POLL_INTERVAL, max_seconds=MAX_POLL_INTERVAL)
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_fields(self):
        self.poll_interval_seconds = parse_duration(self.poll_interval)
        return self

    @property
    def poll_interval_text(self) -> str:
        """Human form of the poll interval, as shown by ``/status``."""
        return humanize_seconds(self.poll_interval_seconds or parse_duration(self.poll_interval))
