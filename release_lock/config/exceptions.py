"""Configuration errors. All derive from ConfigurationError so the entry
point can report any of them and exit non-zero."""

from typing import Any


class ConfigurationError(Exception):
    """Configuration could not be loaded or is invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationFileError(ConfigurationError):
    """The YAML file is missing, unreadable or not a mapping."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.file_path = file_path


class ConfigurationValidationError(ConfigurationError):
    """A value was present but rejected by the models.

    ``validation_errors`` holds pydantic's error list.
    """

    def __init__(
        self,
        message: str,
        validation_errors: list[Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.validation_errors = validation_errors or []


class ConfigurationMissingError(ConfigurationError):
    """Required values are absent; ``missing_fields`` names their env vars."""

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.missing_fields = missing_fields or []


class EnvironmentVariableError(ConfigurationError):
    """``${VAR}`` substitution referenced an unset variable with no default."""

    def __init__(
        self,
        message: str,
        variable_name: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.variable_name = variable_name
