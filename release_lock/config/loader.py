"""Configuration loading.

Sources are layered in this order, later ones winning:
1. Default values from the pydantic models
2. Configuration file (YAML), if one is given or found
3. Environment variables (after reading a ``.env`` file, if present)
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .exceptions import (
    ConfigurationFileError,
    ConfigurationMissingError,
    ConfigurationValidationError,
)
from .models import Config

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "RELEASE_LOCK_CONFIG_PATH"

# Environment variable -> (section, field)
ENVIRONMENT_MAPPING: dict[str, tuple[str, str]] = {
    "WEBHOOK_SECRET": ("github", "webhook_secret"),
    "GITHUB_APP_ID": ("github", "app_id"),
    "GITHUB_APP_PRIVATE_KEY": ("github", "private_key"),
    "GITHUB_API_URL": ("github", "api_url"),
    "MODE": ("system", "mode"),
    "LOG_LEVEL": ("system", "log_level"),
    "RELEASE_LOCK_CHECK_NAME": ("lock", "check_name"),
    "RELEASE_LOCK_DEPLOY_WORKFLOW_PATH": ("lock", "deploy_workflow_path"),
    "RELEASE_LOCK_EVENT_TIMEOUT": ("lock", "event_timeout"),
    "PORT": ("server", "port"),
}

REQUIRED_FIELDS: dict[tuple[str, str], str] = {
    ("github", "app_id"): "GITHUB_APP_ID",
    ("github", "private_key"): "GITHUB_APP_PRIVATE_KEY",
    ("github", "webhook_secret"): "WEBHOOK_SECRET",
}

SENSITIVE_PATTERNS = ("secret", "private_key", "token", "password")


class ConfigurationLoader:
    """Loads and validates configuration from files and the environment."""

    def __init__(self, environ: dict[str, str] | None = None) -> None:
        """Initialize configuration loader.

        Args:
            environ: Environment to read from; defaults to ``os.environ``
        """
        self._environ = environ
        self._config: Config | None = None
        self._config_file_path: Path | None = None

    @property
    def environ(self) -> dict[str, str]:
        return dict(os.environ) if self._environ is None else self._environ

    def read_file(self, config_path: str | Path) -> dict[str, Any]:
        """Read a YAML configuration file into a dictionary.

        Raises:
            ConfigurationFileError: If file cannot be read or parsed
        """
        config_path = Path(config_path)

        if not config_path.is_file():
            raise ConfigurationFileError(
                f"Configuration file not found: {config_path}", file_path=str(config_path)
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationFileError(
                f"Failed to parse YAML configuration: {e}", file_path=str(config_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read configuration file: {e}", file_path=str(config_path)
            ) from e

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ConfigurationFileError(
                "Configuration file must contain a mapping at the top level",
                file_path=str(config_path),
            )
        self._config_file_path = config_path.resolve()
        return config_data

    def read_environment(self) -> dict[str, Any]:
        """Collect configuration values from well-known environment variables."""
        env = self.environ
        data: dict[str, Any] = {}
        for variable, (section, field) in ENVIRONMENT_MAPPING.items():
            value = env.get(variable)
            if value is None or value == "":
                continue
            data.setdefault(section, {})[field] = value
        return data

    def load_from_dict(self, config_data: dict[str, Any]) -> Config:
        """Validate a configuration dictionary.

        Raises:
            ConfigurationMissingError: If a required value is absent
            ConfigurationValidationError: If configuration validation fails
        """
        missing = [
            env_name
            for (section, field), env_name in REQUIRED_FIELDS.items()
            if (config_data.get(section) or {}).get(field) in (None, "")
        ]
        if missing:
            raise ConfigurationMissingError(
                f"Missing required configuration: {', '.join(missing)}",
                missing_fields=missing,
            )

        try:
            self._config = Config(**config_data)
        except ValidationError as e:
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}", validation_errors=e.errors()
            ) from e
        return self._config

    def load(self, config_path: str | Path | None = None, use_dotenv: bool = True) -> Config:
        """Load configuration from the optional file overlaid with the environment.

        Args:
            config_path: Explicit YAML file; falls back to ``RELEASE_LOCK_CONFIG_PATH``
            use_dotenv: Whether to read a ``.env`` file into the process environment

        Returns:
            Validated configuration
        """
        if use_dotenv and self._environ is None:
            load_dotenv()

        config_path = config_path or self.environ.get(CONFIG_PATH_ENV)
        file_data = self.read_file(config_path) if config_path else {}
        return self.load_from_dict(merge_configs(file_data, self.read_environment()))

    @property
    def config(self) -> Config | None:
        return self._config

    @property
    def config_file_path(self) -> Path | None:
        return self._config_file_path


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``config_dict`` with secrets and keys masked for logging."""

    def mask_recursive(obj: Any, field_name: str = "") -> Any:
        if isinstance(obj, dict):
            return {k: mask_recursive(v, str(k).lower()) for k, v in obj.items()}
        if isinstance(obj, list):
            return [mask_recursive(item, field_name) for item in obj]
        if isinstance(obj, str) and obj and any(p in field_name for p in SENSITIVE_PATTERNS):
            return "***MASKED***"
        return obj

    return mask_recursive(config_dict)


def get_config_summary(config: Config) -> dict[str, Any]:
    """Configuration as a JSON-friendly dictionary with secrets masked."""
    return mask_sensitive_values(config.model_dump(mode="json"))


# Global configuration loader instance
_loader = ConfigurationLoader()


def load_config(config_path: str | Path | None = None) -> Config:
    """Load the process configuration.

    Raises:
        ConfigurationError: If configuration cannot be loaded or is invalid
    """
    config = _loader.load(config_path)
    logger.info(f"Configuration loaded: {get_config_summary(config)}")
    return config

