"""Unit tests for the process entry point."""

import logging
from typing import Any
from unittest.mock import Mock, patch

import pytest

from release_lock.config.exceptions import ConfigurationMissingError
from release_lock.config.models import Config
from release_lock.server import main, parse_args


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParseArgs:
    def test_defaults(self) -> None:
        args = parse_args([])

        assert args.config is None
        assert args.port is None

    def test_overrides(self) -> None:
        args = parse_args(["--config", "lock.yaml", "--port", "9000", "--log-level", "debug"])

        assert args.config == "lock.yaml"
        assert args.port == 9000
        assert args.log_level == "debug"


class TestMain:
    @patch("release_lock.server.load_config")
    def test_invalid_configuration_exits_nonzero(self, mock_load: Mock) -> None:
        mock_load.side_effect = ConfigurationMissingError(
            "Missing required configuration: GITHUB_APP_ID", missing_fields=["GITHUB_APP_ID"]
        )

        assert main([]) == 1

    @patch("release_lock.server.uvicorn.run")
    @patch("release_lock.server.load_config")
    def test_serves_with_cli_overrides(
        self, mock_load: Mock, mock_run: Mock, config_data: dict[str, Any]
    ) -> None:
        mock_load.return_value = Config(**config_data)

        assert main(["--config", "lock.yaml", "--host", "127.0.0.1", "--port", "9000"]) == 0

        mock_load.assert_called_once_with("lock.yaml")
        _, kwargs = mock_run.call_args
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9000
        assert kwargs["log_config"] is None

    @patch("release_lock.server.uvicorn.run")
    @patch("release_lock.server.load_config")
    def test_uses_configured_address(
        self, mock_load: Mock, mock_run: Mock, config_data: dict[str, Any]
    ) -> None:
        config_data["server"] = {"host": "127.0.0.1", "port": 8181}
        mock_load.return_value = Config(**config_data)

        main([])

        _, kwargs = mock_run.call_args
        assert (kwargs["host"], kwargs["port"]) == ("127.0.0.1", 8181)
