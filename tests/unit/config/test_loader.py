"""Unit tests for configuration loader functionality.

This module tests the ConfigurationLoader class, file and environment
layering, required value checks and secret masking.
"""

import tempfile
from pathlib import Path

import pytest
import yaml

import release_lock.config
from release_lock.config.exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationMissingError,
    ConfigurationValidationError,
)
from release_lock.config.loader import (
    ConfigurationLoader,
    get_config_summary,
    load_config,
    mask_sensitive_values,
    merge_configs,
)
from release_lock.config.models import Config, RunMode

REQUIRED_ENV = {
    "GITHUB_APP_ID": "1234",
    "GITHUB_APP_PRIVATE_KEY": "-----BEGIN KEY-----\\nabc\\n-----END KEY-----",
    "WEBHOOK_SECRET": "s3cret",
}


def write_yaml(directory: str, data: object) -> Path:
    path = Path(directory) / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestConfigurationLoader:
    """Tests for ConfigurationLoader class methods."""

    def test_initial_state(self):
        loader = ConfigurationLoader(environ={})

        assert loader.config is None
        assert loader.config_file_path is None

    def test_load_from_environment_only(self):
        """
        Why: The service is normally configured entirely through env vars
        What: Tests that the documented variables produce a valid config
        How: Loads with an explicit environment and no file
        """
        loader = ConfigurationLoader(
            environ={
                **REQUIRED_ENV,
                "MODE": "local",
                "LOG_LEVEL": "debug",
                "RELEASE_LOCK_CHECK_NAME": "Release Gate",
                "RELEASE_LOCK_DEPLOY_WORKFLOW_PATH": ".github/workflows/release.yml",
                "PORT": "9000",
            }
        )

        config = loader.load()

        assert config.github.app_id == 1234
        assert "\n" in config.github.private_key
        assert config.system.mode == RunMode.LOCAL
        assert config.lock.check_name == "Release Gate"
        assert config.lock.deploy_workflow_path == ".github/workflows/release.yml"
        assert config.server.port == 9000
        assert loader.config is config

    def test_missing_required_values(self):
        loader = ConfigurationLoader(environ={"WEBHOOK_SECRET": "s"})

        with pytest.raises(ConfigurationMissingError) as exc_info:
            loader.load()

        assert exc_info.value.missing_fields == ["GITHUB_APP_ID", "GITHUB_APP_PRIVATE_KEY"]

    def test_invalid_value_raises_validation_error(self):
        loader = ConfigurationLoader(environ={**REQUIRED_ENV, "GITHUB_APP_ID": "not-a-number"})

        with pytest.raises(ConfigurationValidationError) as exc_info:
            loader.load()

        assert exc_info.value.validation_errors

    def test_environment_overrides_file(self):
        """
        Why: Deployments keep policy in a file but inject secrets and overrides via env
        What: Tests that env values win over file values and untouched file values stay
        How: Writes a YAML file and loads it with a conflicting environment
        """
        with tempfile.TemporaryDirectory() as tmp:
            path = write_yaml(
                tmp,
                {
                    "github": {"app_id": 1, "private_key": "k", "webhook_secret": "file"},
                    "lock": {"check_name": "From File", "override_command": "/unlock"},
                    "repositories": [{"repository": "octo-org/service"}],
                },
            )
            loader = ConfigurationLoader(
                environ={"WEBHOOK_SECRET": "env", "RELEASE_LOCK_CHECK_NAME": "From Env"}
            )

            config = loader.load(path)

        assert config.github.webhook_secret == "env"
        assert config.github.app_id == 1
        assert config.lock.check_name == "From Env"
        assert config.lock.override_command == "/unlock"
        assert loader.config_file_path == path.resolve()

    def test_config_path_from_environment(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_yaml(tmp, {"server": {"port": 7000}})
            loader = ConfigurationLoader(
                environ={**REQUIRED_ENV, "RELEASE_LOCK_CONFIG_PATH": str(path)}
            )

            config = loader.load()

        assert config.server.port == 7000

    def test_missing_file(self):
        loader = ConfigurationLoader(environ=REQUIRED_ENV)

        with pytest.raises(ConfigurationFileError) as exc_info:
            loader.load("/nonexistent/config.yaml")

        assert exc_info.value.file_path == "/nonexistent/config.yaml"

    def test_invalid_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("github: [unclosed", encoding="utf-8")

            with pytest.raises(ConfigurationFileError, match="parse YAML"):
                ConfigurationLoader(environ=REQUIRED_ENV).load(path)

    def test_non_mapping_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_yaml(tmp, ["not", "a", "mapping"])

            with pytest.raises(ConfigurationFileError, match="mapping"):
                ConfigurationLoader(environ=REQUIRED_ENV).load(path)

    def test_empty_file_uses_environment(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("", encoding="utf-8")

            config = ConfigurationLoader(environ=REQUIRED_ENV).load(path)

        assert isinstance(config, Config)

    def test_all_loader_errors_are_configuration_errors(self):
        with pytest.raises(ConfigurationError):
            ConfigurationLoader(environ={}).load()


class TestHelpers:
    def test_merge_configs_is_deep_and_non_destructive(self):
        base = {"github": {"app_id": 1, "private_key": "k"}, "lock": {"check_name": "A"}}
        override = {"github": {"app_id": 2}}

        merged = merge_configs(base, override)

        assert merged == {"github": {"app_id": 2, "private_key": "k"}, "lock": {"check_name": "A"}}
        assert base["github"]["app_id"] == 1

    def test_mask_sensitive_values(self):
        masked = mask_sensitive_values(
            {
                "github": {
                    "app_id": 1,
                    "private_key": "-----BEGIN KEY-----",
                    "webhook_secret": "s3cret",
                },
                "lock": {"check_name": "Example Release Check"},
            }
        )

        assert masked["github"]["private_key"] == "***MASKED***"
        assert masked["github"]["webhook_secret"] == "***MASKED***"
        assert masked["github"]["app_id"] == 1
        assert masked["lock"]["check_name"] == "Example Release Check"

    def test_config_summary_hides_secrets(self, config_data):
        summary = get_config_summary(Config(**config_data))

        assert "s3cret" not in str(summary)
        assert "BEGIN RSA PRIVATE KEY" not in str(summary)
        assert summary["lock"]["check_name"] == "Example Release Check"


class TestLoadConfig:
    def test_load_config_returns_validated_config(self, monkeypatch, tmp_path):
        """
        Why: Callers keep the loaded Config themselves; there is no global accessor
        What: Tests load_config from the environment and the package's public names
        How: Sets the required variables and loads without a file
        """
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("RELEASE_LOCK_CONFIG_PATH", raising=False)
        for key, value in REQUIRED_ENV.items():
            monkeypatch.setenv(key, value)

        config = load_config()

        assert config.github.app_id == 1234
        assert all(hasattr(release_lock.config, name) for name in release_lock.config.__all__)
        assert "get_config" not in release_lock.config.__all__
