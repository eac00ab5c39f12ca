"""
Run the webhook search service.

    python -m webhook_search --config config.yaml --port 8080
"""

import argparse
import logging
import sys

import uvicorn

from .api import create_app
from .config import ConfigError, load_config, setup_logging


logger = logging.getLogger(__name__)


def main():
    """Main server entry point."""
    parser = argparse.ArgumentParser(
        description="Webhook Search - capture and search incoming webhooks"
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to YAML configuration file",
    )

    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface to bind (default: 0.0.0.0)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level, args.debug)
    logger.info(f"Webhook search starting on {args.host}:{args.port}")

    app = create_app(config=config)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="debug" if args.debug else config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
