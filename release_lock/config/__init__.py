"""Configuration management for the release lock service.

Example usage:
    from release_lock.config import load_config

    config = load_config("config.yaml")
    policy = config.lock_policy_for("octo-org", "service")
"""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationMissingError,
    ConfigurationValidationError,
    EnvironmentVariableError,
)
from .loader import (
    ConfigurationLoader,
    get_config_summary,
    load_config,
    mask_sensitive_values,
    merge_configs,
)
from .models import (
    Config,
    GitHubAppConfig,
    LockPolicyConfig,
    LogLevel,
    RepositoryLockConfig,
    RunMode,
    ServerConfig,
    SystemConfig,
)

__all__ = [
    "Config",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationMissingError",
    "ConfigurationValidationError",
    "EnvironmentVariableError",
    "GitHubAppConfig",
    "LockPolicyConfig",
    "LogLevel",
    "RepositoryLockConfig",
    "RunMode",
    "ServerConfig",
    "SystemConfig",
    "get_config_summary",
    "load_config",
    "mask_sensitive_values",
    "merge_configs",
]
