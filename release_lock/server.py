"""Process entry point: load configuration and serve the webhook receiver."""

import argparse
import logging
import sys

import uvicorn

from release_lock.config import ConfigurationError, load_config
from release_lock.logging_config import configure_logging
from release_lock.webhooks import create_app

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Release lock GitHub App")
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument("--host", help="Override server.host")
    parser.add_argument("--port", type=int, help="Override server.port")
    parser.add_argument("--log-level", help="Override system.log_level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the service until interrupted."""
    args = parse_args(argv)
    configure_logging(args.log_level or "INFO", mode="local")

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    configure_logging(args.log_level or config.system.log_level.value, config.system.mode.value)

    uvicorn.run(
        create_app(config),
        host=args.host or config.server.host,
        port=args.port or config.server.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
