"""Pydantic configuration models for the release lock service.

The configuration tree is:
- Config: root, holding every section below
- SystemConfig: logging level and output mode
- GitHubAppConfig: app credentials, webhook secret and API client tuning
- LockPolicyConfig: check name, deploy workflow path and override triggers
- RepositoryLockConfig: optional per-repository overrides of the lock policy
- ServerConfig: where the webhook receiver listens

String values may reference environment variables as ``${VAR_NAME}`` or
``${VAR_NAME:default}``.
"""

import os
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from release_lock.lock.policy import LockPolicy

from .exceptions import EnvironmentVariableError

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")
_REPOSITORY_PATTERN = re.compile(r"^[^/\s]+/[^/\s]+$")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RunMode(str, Enum):
    """Output mode; ``local`` logs human-readable lines, ``prod`` logs JSON."""

    PROD = "prod"
    LOCAL = "local"


def _substitute(value: Any) -> Any:
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise EnvironmentVariableError(
                f"Required environment variable '{var_name}' not found",
                variable_name=var_name,
            )

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: _substitute(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(item) for item in value]
    return value


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any) -> Any:
        """Replace ``${VAR}`` and ``${VAR:default}`` references in string values.

        Raises:
            EnvironmentVariableError: If a referenced variable without a
                default is not set
        """
        if not isinstance(values, dict):
            return values
        return {key: _substitute(value) for key, value in values.items()}


class SystemConfig(BaseConfigModel):
    """Process-wide settings."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    mode: RunMode = Field(default=RunMode.PROD, description="Log output mode")
    environment: str = Field(default="production", description="Deployment label")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class GitHubAppConfig(BaseConfigModel):
    """GitHub App credentials and API client settings."""

    app_id: int = Field(gt=0, description="GitHub App ID")
    private_key: str = Field(min_length=1, description="PEM encoded app private key")
    webhook_secret: str = Field(min_length=1, description="Webhook HMAC secret")
    api_url: str = Field(default="https://api.github.com")
    timeout: int = Field(default=15, ge=1, le=120, description="Per-request timeout")
    max_retries: int = Field(default=2, ge=0, le=10)
    user_agent: str = Field(default="release-lock/1.0")

    @field_validator("private_key")
    @classmethod
    def unescape_newlines(cls, value: str) -> str:
        """Accept keys whose newlines were escaped to fit in one env var line."""
        if "\\n" in value and "\n" not in value:
            return value.replace("\\n", "\n")
        return value

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_url must be an http(s) URL")
        return value.rstrip("/")


class LockPolicyConfig(BaseConfigModel):
    """Default release lock policy."""

    check_name: str = Field(default="Example Release Check", min_length=1)
    deploy_workflow_path: str = Field(
        default=".github/workflows/deploy.yaml",
        min_length=1,
        description="Exact path of the deployment workflow file",
    )
    override_command: str = Field(default="/override", min_length=1)
    override_action_id: str = Field(default="override_rel_lock", min_length=1, max_length=20)
    override_action_label: str = Field(default="Override Lock", min_length=1, max_length=20)
    override_action_description: str = Field(
        default="Override the release lock", min_length=1, max_length=40
    )
    event_timeout: float = Field(
        default=30.0, gt=0, le=600, description="Budget for handling one delivery"
    )


class RepositoryLockConfig(BaseConfigModel):
    """Per-repository override of the check name or deploy workflow path."""

    repository: str = Field(description="Repository full name, owner/repo")
    check_name: str | None = Field(default=None, min_length=1)
    deploy_workflow_path: str | None = Field(default=None, min_length=1)

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, value: str) -> str:
        if not _REPOSITORY_PATTERN.match(value):
            raise ValueError(f"repository must look like 'owner/repo', got '{value}'")
        return value.lower()


class ServerConfig(BaseConfigModel):
    """Webhook receiver settings."""

    host: str = Field(default="0.0.0.0")  # nosec B104
    port: int = Field(default=8080, ge=1, le=65535)
    webhook_path: str = Field(default="/hook")

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("webhook_path must start with '/'")
        return value


class Config(BaseConfigModel):
    """Root configuration."""

    system: SystemConfig = Field(default_factory=SystemConfig)
    github: GitHubAppConfig
    lock: LockPolicyConfig = Field(default_factory=LockPolicyConfig)
    repositories: list[RepositoryLockConfig] = Field(default_factory=list)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @model_validator(mode="after")
    def validate_unique_repositories(self) -> "Config":
        names = [repo.repository for repo in self.repositories]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate repository overrides: {', '.join(duplicates)}")
        return self

    def lock_policy_for(self, owner: str, repo: str) -> LockPolicy:
        """Resolve the effective lock policy for ``owner/repo``."""
        check_name = self.lock.check_name
        workflow_path = self.lock.deploy_workflow_path

        full_name = f"{owner}/{repo}".lower()
        for override in self.repositories:
            if override.repository == full_name:
                check_name = override.check_name or check_name
                workflow_path = override.deploy_workflow_path or workflow_path
                break

        return LockPolicy(
            check_name=check_name,
            deploy_workflow_path=workflow_path,
            app_id=self.github.app_id,
            override_command=self.lock.override_command,
            override_action_id=self.lock.override_action_id,
            override_action_label=self.lock.override_action_label,
            override_action_description=self.lock.override_action_description,
        )
