"""
Ledger Server - Main entry point.

Usage:
    python -m backend.ledger_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Shard handles are opened lazily, on first request per shard
    - Shutdown closes every cached handle (best effort, no draining)
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    app = create_app(config)

    logger.info(f"Starting ledger server on {config.http.host}:{config.http.port}")
    uvicorn.run(
        app,
        host=config.http.host,
        port=config.http.port,
        log_config=None,  # Keep the handlers installed above
    )


if __name__ == "__main__":
    main()
