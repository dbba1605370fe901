"""Configuration loader for the marketplace monitor."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (Path("config.yaml"), Path("config") / "config.yaml")


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load and validate configuration from YAML and environment variables.

    Config file lookup:
    1. Use ``config_path`` if given (it must exist)
    2. Try ``config.yaml`` in the current directory
    3. Try ``./config/config.yaml``
    4. Fall back to built-in defaults

    Environment overrides (``CHANNEL_ID``, ``LOG_LEVEL``, ``DATABASE_URL``)
    are applied on top of the file.

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If the file or the environment is invalid
    """
    config_file = _find_config_file(config_path)
    config_dict = _read_yaml(config_file) if config_file else {}

    warning_messages = check_for_warnings(config_dict)
    if warning_messages:
        emit_warnings(warning_messages)

    app_config = parse_app_config(config_dict)
    env_config = load_environment_config()
    return apply_environment_overrides(app_config, env_config), env_config


def parse_app_config(config_dict: Dict[str, Any]) -> AppConfig:
    """
    Validate a raw mapping into :class:`AppConfig`.

    Raises:
        ConfigurationError: With one readable line per validation problem
    """
    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"]) or "config"
            error_type = error["type"]
            if error_type == "missing":
                errors.append(f"Missing required field: {field_path}")
            elif error_type in ("string_type", "int_type", "bool_type", "float_type"):
                expected = error_type.replace("_type", "")
                errors.append(f"Invalid type for '{field_path}': expected {expected}, got {error.get('input')!r}")
            elif error_type == "extra_forbidden":
                errors.append(f"Unknown field: {field_path}")
            else:
                errors.append(f"{field_path}: {error['msg']}")

        raise ConfigurationError(
            "Configuration validation failed",
            errors=errors,
            suggestions=[
                "Review config.example.yaml for correct format",
                "Verify field types match the expected schema",
            ],
        ) from e


def apply_environment_overrides(app_config: AppConfig, env_config: EnvironmentConfig) -> AppConfig:
    """Return a copy of ``app_config`` with environment values taking precedence."""
    overrides: Dict[str, Any] = {}
    if env_config.channel_id:
        overrides["telegram"] = {"channel_id": env_config.channel_id}
    if env_config.log_level:
        overrides["logging"] = {"level": env_config.log_level}
    if env_config.database_url:
        overrides["storage"] = {"database_url": env_config.database_url}
    if not overrides:
        return app_config

    merged = app_config.model_dump(exclude={"poll_interval_seconds"})
    for section, values in overrides.items():
        merged[section].update(values)
    return parse_app_config(merged)


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[f"Ensure {config_file} is readable", "Check file permissions"],
        ) from e

    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration file {config_file} must contain a mapping at the top level",
            suggestions=["Copy config.example.yaml to config.yaml"],
        )
    return config_dict


def _find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[f"Ensure {config_path} exists", "Check the path and try again"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate
    return None
